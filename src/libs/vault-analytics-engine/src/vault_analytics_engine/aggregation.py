# src/libs/vault-analytics-engine/src/vault_analytics_engine/aggregation.py
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .cashflows import combine_cash_flows
from .constants import (
    APR_MIN_DAYS,
    AUM_USD,
    DATE,
    DEPOSITS_CUM_USD,
    PERCENT_BASE_EPSILON,
    PNL_USD,
    SUMMED_FIELDS,
    WITHDRAWALS_CUM_USD,
)
from .helpers import days_between
from .irr_calculator import IRRCalculator
from .models import DailySeriesPoint, VaultEvent
from .series import DailyMetricsCalculator
from .twrr import range_twrr

logger = logging.getLogger(__name__)


def union_series(per_vault: Mapping[str, Sequence[DailySeriesPoint]]) -> pd.DataFrame:
    """
    Sums aum, cumulative deposits, cumulative withdrawals and pnl across vaults
    for every date present in any vault's series, ordered by date.
    """
    frames = [
        pd.DataFrame([point.to_dict() for point in points])[[DATE] + SUMMED_FIELDS]
        for points in per_vault.values()
        if points
    ]
    if not frames:
        return pd.DataFrame(columns=[DATE] + SUMMED_FIELDS)

    combined = pd.concat(frames, ignore_index=True)
    return combined.groupby(DATE, sort=True)[SUMMED_FIELDS].sum().reset_index()


def aggregate_series(
    per_vault: Mapping[str, Sequence[DailySeriesPoint]],
    events_by_vault: Dict[str, Sequence[VaultEvent]],
    end: date,
    start: Optional[date] = None,
) -> Tuple[List[DailySeriesPoint], Optional[date]]:
    """
    Combines per-vault series into one. ROI, APR and TWRR are recomputed over
    the summed figures, with APR driven by the cash flows of every target vault
    since the earliest deposit. Every date of the per-vault series is walked so
    the carried APR and the TWRR chain match a full-history walk; only points on
    or after `start` are returned.
    Returns (points, inception_date).
    """
    totals = union_series(per_vault)
    inception, cash_flows = combine_cash_flows(events_by_vault, end)
    logger.debug(
        f"Aggregating {len(per_vault)} vault series into {len(totals)} dates "
        f"with {len(cash_flows)} cash flows since {inception}."
    )

    calculator = DailyMetricsCalculator()
    points = []
    for record in totals.to_dict("records"):
        deposits_cum = float(record[DEPOSITS_CUM_USD])
        point = calculator.next_point(
            record[DATE],
            float(record[AUM_USD]),
            deposits_cum,
            float(record[WITHDRAWALS_CUM_USD]),
            cash_flows,
            inception if deposits_cum > 0 else None,
            pnl=float(record[PNL_USD]),
        )
        if start is None or point.date >= start:
            points.append(point)
    return points, inception


@dataclass(frozen=True)
class AggregateSummary:
    aum_usd: float
    pnl_usd: float
    apr_percent: float
    roi_percent: float
    twrr_percent: float
    aum_change_usd: float
    aum_change_percent: float
    pnl_change_usd: float
    pnl_change_percent: float
    apr_change_percent_points: float
    roi_change_percent_points: float
    twrr_change_percent_points: float
    apr_eligible: bool
    days_elapsed: int
    range_return_percent: Optional[float]
    range_days_elapsed: int
    range_twrr_percent: Optional[float]
    range_twrr_days_elapsed: int


def build_aggregate_summary(
    rows: Sequence[DailySeriesPoint],
    inception: Optional[date],
    calculator: Optional[IRRCalculator] = None,
) -> Optional[AggregateSummary]:
    """
    Latest figures of an aggregate series, their change since the previous
    point, and the money- and time-weighted returns of the returned window.
    None for an empty series.
    """
    if not rows:
        return None

    latest = rows[-1]
    previous = rows[-2] if len(rows) > 1 else None

    days_elapsed = days_between(inception, latest.date) + 1 if inception else 0
    calculator = calculator if calculator is not None else IRRCalculator()
    range_return, range_days = calculator.compute_range_return(rows)
    range_twrr_percent, range_twrr_days = range_twrr(rows)

    def change(field: str) -> float:
        return getattr(latest, field) - getattr(previous, field) if previous else 0.0

    has_base = previous is not None and abs(previous.aum_usd) > PERCENT_BASE_EPSILON
    aum_change = change("aum_usd")
    pnl_change = change("pnl_usd")

    return AggregateSummary(
        aum_usd=latest.aum_usd,
        pnl_usd=latest.pnl_usd,
        apr_percent=latest.apr_percent,
        roi_percent=latest.roi_percent,
        twrr_percent=latest.twrr_percent,
        aum_change_usd=aum_change,
        aum_change_percent=aum_change / previous.aum_usd * 100 if has_base else 0.0,
        pnl_change_usd=pnl_change,
        pnl_change_percent=pnl_change / abs(previous.aum_usd) * 100 if has_base else 0.0,
        apr_change_percent_points=change("apr_percent"),
        roi_change_percent_points=change("roi_percent"),
        twrr_change_percent_points=change("twrr_percent"),
        apr_eligible=days_elapsed >= APR_MIN_DAYS,
        days_elapsed=days_elapsed,
        range_return_percent=range_return,
        range_days_elapsed=range_days,
        range_twrr_percent=range_twrr_percent,
        range_twrr_days_elapsed=range_twrr_days,
    )
