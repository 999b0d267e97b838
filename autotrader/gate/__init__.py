"""Decision gate."""

from autotrader.gate.filters import (
    FILTERS,
    FilterContext,
    FilterResult,
    GateOptions,
    evaluate,
    min_confidence_for,
)

__all__ = ["FILTERS", "FilterContext", "FilterResult", "GateOptions", "evaluate", "min_confidence_for"]
