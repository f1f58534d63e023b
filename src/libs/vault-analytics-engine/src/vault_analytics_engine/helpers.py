# src/libs/vault-analytics-engine/src/vault_analytics_engine/helpers.py
import math
from datetime import UTC, date, datetime, time
from typing import Any, List

import pandas as pd

from .constants import USD_EPSILON


def coerce_float(value: Any) -> float:
    """
    Converts ledger numerics (Decimal, str, int, None) to a finite float.
    Anything that cannot be read as a finite number becomes 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def days_between(start: date, end: date) -> int:
    """Whole calendar days from start to end (negative if end precedes start)."""
    return (end - start).days


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59), tzinfo=UTC)


def date_range(start: date, end: date) -> List[date]:
    """Every calendar day from start to end inclusive; empty if end < start."""
    if end < start:
        return []
    return [ts.date() for ts in pd.date_range(start=start, end=end, freq="D")]


def compute_pnl(aum: float, deposits_cum: float, withdrawals_cum: float) -> float:
    # Profit = equity - net contributed capital
    return aum + withdrawals_cum - deposits_cum


def compute_roi_percent(pnl: float, net_contributed: float) -> float:
    return (pnl / net_contributed) * 100 if net_contributed > USD_EPSILON else 0.0
