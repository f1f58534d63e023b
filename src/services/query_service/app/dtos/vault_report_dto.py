# src/services/query_service/app/dtos/vault_report_dto.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DailySeriesPointRecord(BaseModel):
    """One day of a vault (or aggregate) report."""

    date: date
    aum_usd: float
    deposits_cum_usd: float
    withdrawals_cum_usd: float
    pnl_usd: float
    roi_percent: float = Field(..., description="PnL over net contributed capital, in percent.")
    apr_percent: float = Field(
        ..., description="Annualized money-weighted return (IRR based), clamped to [-100, 1000]."
    )
    twrr_percent: float = Field(..., description="Cumulative time-weighted return since the first point.")
    aum_vnd: float
    pnl_vnd: float

    model_config = ConfigDict(from_attributes=True)


class VaultSeriesResponse(BaseModel):
    vault: str
    series: List[DailySeriesPointRecord]


class VaultHeaderResponse(BaseModel):
    """Latest metrics of a single vault."""

    vault: str
    aum_usd: float = 0.0
    aum_vnd: float = 0.0
    pnl_usd: float = 0.0
    pnl_vnd: float = 0.0
    roi_percent: float = 0.0
    apr_percent: float = 0.0
    twrr_percent: float = 0.0
    last_valuation_usd: Optional[float] = Field(
        None, description="USD value of the most recent valuation, if the vault has one."
    )
    net_flow_since_valuation_usd: float = 0.0
    deposits_cum_usd: float = 0.0
    withdrawals_cum_usd: float = 0.0
    as_of: datetime


class VaultSummaryRow(BaseModel):
    vault: str
    aum_usd: float
    aum_vnd: float
    pnl_usd: float
    pnl_vnd: float
    roi_percent: float
    apr_percent: float
    twrr_percent: float


class VaultSummaryTotals(BaseModel):
    aum_usd: float = 0.0
    aum_vnd: float = 0.0
    pnl_usd: float = 0.0
    pnl_vnd: float = 0.0


class VaultsSummaryResponse(BaseModel):
    rows: List[VaultSummaryRow]
    totals: VaultSummaryTotals


class AggregateSummary(BaseModel):
    """Latest figures of the aggregate series and how they moved since the previous point."""

    aum_usd: float
    aum_vnd: float
    pnl_usd: float
    pnl_vnd: float
    apr_percent: float
    roi_percent: float
    twrr_percent: float
    aum_change_usd: float
    aum_change_vnd: float
    aum_change_percent: float
    pnl_change_usd: float
    pnl_change_vnd: float
    pnl_change_percent: float = Field(
        ..., description="PnL change relative to the previous point's absolute AUM, in percent."
    )
    apr_change_percent_points: float
    roi_change_percent_points: float
    twrr_change_percent_points: float
    apr_eligible: bool = Field(..., description="True once 30 days have passed since inception.")
    days_elapsed: int
    range_return_percent: Optional[float] = Field(
        None, description="Money-weighted return over the returned window, not annualized."
    )
    range_days_elapsed: int
    range_twrr_percent: Optional[float] = Field(
        None, description="Time-weighted return chained within the returned window."
    )
    range_twrr_days_elapsed: int

    model_config = ConfigDict(from_attributes=True)


class AggregateSeriesResponse(BaseModel):
    vaults: List[str] = Field(..., description="The vaults included in the aggregate.")
    series: List[DailySeriesPointRecord]
    summary: Optional[AggregateSummary] = None
