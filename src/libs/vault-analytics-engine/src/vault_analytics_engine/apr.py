# src/libs/vault-analytics-engine/src/vault_analytics_engine/apr.py
import math
from typing import Optional, Sequence

from .constants import (
    APR_CEILING_PCT,
    APR_DEEP_LOSS_ROI,
    APR_FLOOR_PCT,
    APR_MIN_DAYS,
    APR_UNSTABLE_IRR,
)
from .irr_calculator import IRRCalculator
from .models import CashFlowEntry


def compute_apr(
    cash_flows: Sequence[CashFlowEntry],
    total_days_elapsed: int,
    roi: float,
    calculator: Optional[IRRCalculator] = None,
) -> float:
    """
    Annualized return in percent for a cash-flow list that already ends with
    its terminal value. `roi` is the simple return as a decimal.

    Plain ROI is reported instead of the IRR when the window is shorter than
    APR_MIN_DAYS, when the vault has lost more than 90%, or when a negative ROI
    comes back with a large positive IRR.
    """
    if total_days_elapsed < APR_MIN_DAYS:
        return roi * 100

    if roi < APR_DEEP_LOSS_ROI:
        return roi * 100

    irr = (calculator if calculator is not None else IRRCalculator()).solve_irr(cash_flows)
    if roi < 0 and irr > APR_UNSTABLE_IRR:
        return roi * 100

    return irr * 100


def clamp_apr(apr_percent: float) -> float:
    """Bounds an APR to [-100, 1000]; NaN becomes 0."""
    if math.isnan(apr_percent):
        return 0.0
    return max(APR_FLOOR_PCT, min(APR_CEILING_PCT, apr_percent))
