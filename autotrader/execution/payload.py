"""
Execution payload builder: signal + bot policy -> risk-sized, DCA-laddered order plan.

All defaulting happens once, in resolve_effective_policy(); build_execution_payload()
only does arithmetic on the resolved values. Pure, no I/O.
"""

from __future__ import annotations
import hashlib
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from autotrader.core.types import BotConfiguration, MarketType, ProfitTakingStrategy, UnifiedSignal
from autotrader.execution.sizing import DcaLevel, build_dca_ladder, exit_prices, fit_ladder

logger = logging.getLogger("autotrader.execution.payload")

# Policy floors used when neither signal nor bot supplies a usable value
DEFAULT_TOTAL_CAPITAL = 1000.0
DEFAULT_INITIAL_ORDER_PCT = 25.0
DEFAULT_RISK_PCT = 2.0
DEFAULT_STOP_LOSS_PCT = 5.0
DEFAULT_TAKE_PROFIT_PCT = 3.0
DEFAULT_DCA_STEP_PCT = 2.0
DEFAULT_LEVERAGE = 1
DEFAULT_TRAILING_DISTANCE_PCT = 1.0
DEFAULT_PARTIAL_PCTS = (25.0, 25.0, 25.0)

BALANCE_USAGE = 0.95
TRAILING_ACTIVATION = 0.95
PARTIAL_CHECKPOINTS = (0.5, 0.75, 1.0)
MAX_CLIENT_ORDER_ID_LEN = 36


@dataclass
class CapitalAllocation:
    total_usd: float
    initial_order_pct: float
    dca_budget_pct: float


@dataclass
class DcaPlan:
    enabled: bool
    levels: list[DcaLevel] = field(default_factory=list)


@dataclass
class TrailingStop:
    activation_price: float
    trailing_distance: float


@dataclass
class PartialTakeProfit:
    price: float
    percentage: float


@dataclass
class RiskParameters:
    stop_loss_price: float
    take_profit_price: float
    trailing: Optional[TrailingStop] = None
    partial_take_profits: Optional[list[PartialTakeProfit]] = None


@dataclass
class PayloadMeta:
    signal_id: str
    strategy_name: str
    is_testnet: bool
    client_order_id: str
    notes: str = ""


@dataclass
class ExecutionPayload:
    """Order plan handed to an ExecutionClient."""
    account_id: str
    exchange: str
    market_type: MarketType
    symbol: str
    side: str
    entry_price: float
    initial_amount_usd: float
    capital: CapitalAllocation
    dca: DcaPlan
    risk: RiskParameters
    meta: PayloadMeta
    leverage: Optional[int] = None

    @property
    def is_buy(self) -> bool:
        return self.side == "buy"

    @property
    def planned_total_usd(self) -> float:
        return self.initial_amount_usd + sum(level.amount_usd for level in self.dca.levels)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping for submission and audit records."""
        def plain(value: Any) -> Any:
            if isinstance(value, Enum):
                return value.value
            if isinstance(value, dict):
                return {k: plain(v) for k, v in value.items()}
            if isinstance(value, list):
                return [plain(v) for v in value]
            return value
        return plain(asdict(self))


@dataclass(frozen=True)
class EffectivePolicy:
    """Fully resolved inputs for one build. No field is missing or non-positive unless degenerate."""
    entry_price: float
    stop_loss_price: Optional[float]
    take_profit_price: Optional[float]
    market_type: MarketType
    total_capital: float
    initial_order_pct: float
    risk_pct: float
    stop_loss_pct: float
    take_profit_pct: float
    dca_levels: int
    dca_step_pct: float
    leverage: Optional[int]
    profit_taking: ProfitTakingStrategy
    trailing_distance_pct: float
    partial_pcts: tuple[float, ...]


def _positive(name: str, value: Any, floor: float, account_id: str) -> float:
    try:
        number = float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        number = 0.0
    if number <= 0:
        logger.warning("account=%s %s=%r not usable, using default %s", account_id, name, value, floor)
        return floor
    return number


def resolve_effective_policy(signal: UnifiedSignal, bot: BotConfiguration) -> EffectivePolicy:
    """Merge signal values over bot values over policy floors."""
    account = bot.account_id
    entry = signal.entry_price if signal.entry_price and signal.entry_price > 0 else 0.0
    if entry <= 0:
        logger.warning("account=%s signal %s has no entry price, payload will be degenerate", account, signal.id)

    initial_pct = _positive("initial_order_percentage", bot.initial_order_percentage, DEFAULT_INITIAL_ORDER_PCT, account)
    if initial_pct > 100:
        logger.warning("account=%s initial_order_percentage=%s capped at 100", account, initial_pct)
        initial_pct = 100.0

    dca_levels = int(bot.dca_levels or 0)
    if dca_levels < 0:
        logger.warning("account=%s dca_levels=%s treated as 0", account, dca_levels)
        dca_levels = 0

    try:
        profit_taking = ProfitTakingStrategy(str(bot.profit_taking_strategy or "fixed").lower())
    except ValueError:
        logger.warning("account=%s unknown profit_taking_strategy %r, using fixed", account, bot.profit_taking_strategy)
        profit_taking = ProfitTakingStrategy.FIXED

    leverage: Optional[int] = None
    if bot.market_type == MarketType.FUTURES:
        leverage = int(signal.leverage) if signal.leverage and signal.leverage > 0 else \
            int(_positive("leverage", bot.leverage, DEFAULT_LEVERAGE, account))

    pcts = list(bot.partial_tp_percentages) if bot.partial_tp_percentages else list(DEFAULT_PARTIAL_PCTS)

    return EffectivePolicy(
        entry_price=entry,
        stop_loss_price=signal.stop_loss if signal.stop_loss and signal.stop_loss > 0 else None,
        take_profit_price=signal.take_profit if signal.take_profit and signal.take_profit > 0 else None,
        market_type=bot.market_type,
        total_capital=_positive("total_capital", bot.total_capital, DEFAULT_TOTAL_CAPITAL, account),
        initial_order_pct=initial_pct,
        risk_pct=_positive("risk_percentage", bot.risk_percentage, DEFAULT_RISK_PCT, account),
        stop_loss_pct=_positive("stop_loss_percentage", bot.stop_loss_percentage, DEFAULT_STOP_LOSS_PCT, account),
        take_profit_pct=_positive("take_profit_percentage", bot.take_profit_percentage, DEFAULT_TAKE_PROFIT_PCT, account),
        dca_levels=dca_levels,
        dca_step_pct=_positive("dca_step_percentage", bot.dca_step_percentage, DEFAULT_DCA_STEP_PCT, account),
        leverage=leverage,
        profit_taking=profit_taking,
        trailing_distance_pct=_positive(
            "trailing_stop_distance", bot.trailing_stop_distance, DEFAULT_TRAILING_DISTANCE_PCT, account
        ),
        partial_pcts=tuple(float(p or 0.0) for p in pcts),
    )


def client_order_id_for(signal_id: str, market_type: MarketType, side: str) -> str:
    """Deterministic idempotency key. Long ids are hashed to fit the exchange limit."""
    key = f"signal_{signal_id}_{market_type.value}_{side}"
    if len(key) <= MAX_CLIENT_ORDER_ID_LEN:
        return key
    return "sig_" + hashlib.sha1(key.encode("utf-8")).hexdigest()[:32]


def _partial_levels(entry: float, target: float, pcts: tuple[float, ...]) -> list[PartialTakeProfit]:
    """Checkpoints at 50/75/100% of the way to target; zero shares dropped, total capped at 100."""
    pairs = [
        (entry + (target - entry) * checkpoint, min(100.0, pct))
        for checkpoint, pct in zip(PARTIAL_CHECKPOINTS, pcts)
        if pct > 0
    ]
    total = sum(pct for _, pct in pairs)
    scale = 100.0 / total if total > 100.0 else 1.0
    return [PartialTakeProfit(price=price, percentage=pct * scale) for price, pct in pairs]


def build_execution_payload(
    signal: UnifiedSignal,
    bot: BotConfiguration,
    exchange: str,
    is_testnet: bool,
    available_balance: Optional[float] = None,
) -> ExecutionPayload:
    """
    Build the order plan. Never raises on missing optional inputs; zero capital or
    prices give a structurally valid payload with zero amounts.
    """
    policy = resolve_effective_policy(signal, bot)
    is_buy = signal.is_buy
    side = signal.side.order_side

    capital = policy.total_capital
    if available_balance is not None and available_balance > 0:
        capital = min(capital, available_balance * BALANCE_USAGE)

    risk_amount = capital * policy.risk_pct / 100.0
    position = min(risk_amount / (policy.stop_loss_pct / 100.0), capital)
    position = max(0.0, position)
    initial_amount = min(position, position * policy.initial_order_pct / 100.0)

    stop, target = exit_prices(
        policy.entry_price, is_buy, policy.stop_loss_pct, policy.take_profit_pct,
        policy.stop_loss_price, policy.take_profit_price,
    )

    ladder = fit_ladder(initial_amount, build_dca_ladder(
        policy.entry_price, is_buy, position - initial_amount, policy.dca_levels, policy.dca_step_pct,
    ), position)

    trailing = None
    partials = None
    if policy.profit_taking == ProfitTakingStrategy.TRAILING:
        activation = target * TRAILING_ACTIVATION if is_buy else target * (2 - TRAILING_ACTIVATION)
        trailing = TrailingStop(activation_price=activation, trailing_distance=policy.trailing_distance_pct / 100.0)
    elif policy.profit_taking == ProfitTakingStrategy.PARTIAL:
        partials = _partial_levels(policy.entry_price, target, policy.partial_pcts)

    strategy_name = signal.strategy_name or f"{signal.source.value} signal"
    client_order_id = client_order_id_for(signal.id, policy.market_type, side)

    return ExecutionPayload(
        account_id=signal.account_id or bot.account_id,
        exchange=exchange,
        market_type=policy.market_type,
        symbol=signal.symbol,
        side=side,
        entry_price=policy.entry_price,
        initial_amount_usd=initial_amount,
        leverage=policy.leverage,
        capital=CapitalAllocation(
            total_usd=position,
            initial_order_pct=policy.initial_order_pct,
            dca_budget_pct=100.0 - policy.initial_order_pct,
        ),
        dca=DcaPlan(enabled=policy.dca_levels > 0, levels=ladder),
        risk=RiskParameters(
            stop_loss_price=stop,
            take_profit_price=target,
            trailing=trailing,
            partial_take_profits=partials,
        ),
        meta=PayloadMeta(
            signal_id=signal.id,
            strategy_name=strategy_name,
            is_testnet=is_testnet,
            client_order_id=client_order_id,
            notes=f"Auto-executed from signal: {strategy_name}",
        ),
    )
