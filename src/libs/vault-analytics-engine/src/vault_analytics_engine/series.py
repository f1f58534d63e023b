# src/libs/vault-analytics-engine/src/vault_analytics_engine/series.py
from datetime import date
from typing import List, Optional, Sequence

from .apr import clamp_apr, compute_apr
from .cashflows import extract_cash_flows, flows_up_to, with_terminal_value
from .constants import USD_EPSILON
from .helpers import compute_pnl, compute_roi_percent, days_between, finite_or_zero
from .ledger import apply_event
from .models import CashFlowEntry, DailySeriesPoint, VaultEvent, VaultState
from .twrr import TwrrChain


class DailyMetricsCalculator:
    """
    Turns consecutive daily observations (AUM plus cumulative flows) into
    DailySeriesPoints. Keeps the previous APR and the TWRR chain between calls,
    so points must be fed in date order.
    """

    def __init__(self):
        self.last_apr = 0.0
        self.twrr = TwrrChain()

    def _apr_for_day(
        self,
        day: date,
        aum: float,
        net_contributed: float,
        roi_percent: float,
        cash_flows: Sequence[CashFlowEntry],
        first_deposit: Optional[date],
    ) -> float:
        if first_deposit is None or day < first_deposit:
            return self.last_apr

        # Fully exited: hold the APR the vault had before it emptied.
        if aum < USD_EPSILON and net_contributed < USD_EPSILON:
            return self.last_apr
        # Capital still in but nothing left: the loss is realized.
        if aum < USD_EPSILON:
            return roi_percent

        days_elapsed = max(1, days_between(first_deposit, day) + 1)
        flows = with_terminal_value(flows_up_to(cash_flows, day), aum, days_elapsed)
        return compute_apr(flows, days_elapsed, roi_percent / 100)

    def next_point(
        self,
        day: date,
        aum: float,
        deposits_cum: float,
        withdrawals_cum: float,
        cash_flows: Sequence[CashFlowEntry],
        first_deposit: Optional[date],
        pnl: Optional[float] = None,
    ) -> DailySeriesPoint:
        """
        Computes the metrics of one day. `pnl` defaults to AUM less net
        contributions; the aggregate series passes the sum of its vaults' PnL.
        """
        if pnl is None:
            pnl = compute_pnl(aum, deposits_cum, withdrawals_cum)
        net_contributed = deposits_cum - withdrawals_cum
        roi_percent = compute_roi_percent(pnl, net_contributed)

        apr = clamp_apr(
            self._apr_for_day(day, aum, net_contributed, roi_percent, cash_flows, first_deposit)
        )
        twrr_percent = self.twrr.update(aum, deposits_cum, withdrawals_cum)
        self.last_apr = apr

        return DailySeriesPoint(
            date=day,
            aum_usd=finite_or_zero(aum),
            deposits_cum_usd=finite_or_zero(deposits_cum),
            withdrawals_cum_usd=finite_or_zero(withdrawals_cum),
            pnl_usd=finite_or_zero(pnl),
            roi_percent=finite_or_zero(roi_percent),
            apr_percent=apr,
            twrr_percent=twrr_percent,
        )


class VaultSeriesCursor:
    """
    Walks one vault's sorted events day by day. `advance_to` applies every event
    dated on or before the day; `emit` turns the day's AUM into a series point.
    Valuation happens between the two calls because it may need prices.
    """

    def __init__(self, events: Sequence[VaultEvent]):
        self._events = events
        self._index = 0
        self.state = VaultState()
        self.cash_flows: List[CashFlowEntry] = extract_cash_flows(events)
        self.metrics = DailyMetricsCalculator()

    def advance_to(self, day: date) -> VaultState:
        while self._index < len(self._events) and self._events[self._index].day <= day:
            self.state = apply_event(self.state, self._events[self._index])
            self._index += 1
        return self.state

    def emit(self, day: date, aum: float) -> DailySeriesPoint:
        return self.metrics.next_point(
            day,
            aum,
            self.state.deposited_cum_usd,
            self.state.withdrawn_cum_usd,
            self.cash_flows,
            self.state.first_deposit_date,
        )


def latest_apr(
    events: Sequence[VaultEvent],
    state: VaultState,
    aum: float,
    roi_percent: float,
    as_of_day: date,
    liquidation_apr: Optional[float] = None,
) -> float:
    """
    Unclamped APR of a vault's latest snapshot. When AUM is ~0 the vault either
    lost its capital (APR is the realized ROI) or was fully exited, in which case
    `liquidation_apr`, computed as of the day before liquidation, is reported.
    """
    first_deposit = state.first_deposit_date
    if first_deposit is None:
        return 0.0

    if aum < USD_EPSILON:
        if state.net_contributed_usd > USD_EPSILON:
            return roi_percent
        return liquidation_apr if liquidation_apr is not None else 0.0

    days_elapsed = max(1, days_between(first_deposit, as_of_day) + 1)
    flows = with_terminal_value(extract_cash_flows(events), aum, days_elapsed)
    return compute_apr(flows, days_elapsed, roi_percent / 100)
