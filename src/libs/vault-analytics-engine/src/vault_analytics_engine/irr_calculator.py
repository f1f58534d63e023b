# src/libs/vault-analytics-engine/src/vault_analytics_engine/irr_calculator.py
import logging
import math
from typing import Optional, Sequence, Tuple

from .constants import (
    DAYS_PER_YEAR,
    DERIVATIVE_EPSILON,
    IRR_MAX_ITERATIONS,
    IRR_RATE_CEILING,
    IRR_RATE_FLOOR,
    IRR_TOLERANCE,
    IRR_TOTAL_LOSS,
    USD_EPSILON,
)
from .helpers import days_between
from .models import CashFlowEntry, DailySeriesPoint

logger = logging.getLogger(__name__)


def _power(base: float, exponent: float) -> float:
    """float power that saturates to +inf instead of raising OverflowError."""
    try:
        return base ** exponent
    except OverflowError:
        return math.inf


def _divide(numerator: float, denominator: float) -> float:
    """float division that yields inf or nan for a zero denominator instead of raising."""
    if denominator == 0:
        return math.copysign(math.inf, numerator) if numerator else math.nan
    return numerator / denominator


def _clamp_rate(rate: float) -> float:
    return max(IRR_RATE_FLOOR, min(IRR_RATE_CEILING, rate))


class IRRCalculator:
    """
    Solves the annual internal rate of return of a day-indexed cash-flow list
    with Newton-Raphson, using a closed form for the single deposit case and a
    simple annualized return when the iteration cannot converge.
    """

    def __init__(
        self,
        max_iterations: int = IRR_MAX_ITERATIONS,
        tolerance: float = IRR_TOLERANCE,
    ):
        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def _npv(self, rate: float, cash_flows: Sequence[CashFlowEntry]) -> float:
        """NPV(r) = sum(CF_i / (1 + r)^(t_i / 365))"""
        total = 0.0
        for cf in cash_flows:
            years = cf.days_from_start / DAYS_PER_YEAR
            total += _divide(cf.amount_usd, _power(1 + rate, years))
        return total

    def _npv_derivative(self, rate: float, cash_flows: Sequence[CashFlowEntry]) -> float:
        """dNPV/dr = sum(-CF_i * (t_i / 365) / (1 + r)^(t_i / 365 + 1))"""
        total = 0.0
        for cf in cash_flows:
            years = cf.days_from_start / DAYS_PER_YEAR
            total += _divide(-cf.amount_usd * years, _power(1 + rate, years + 1))
        return total

    @staticmethod
    def _totals(cash_flows: Sequence[CashFlowEntry]) -> Tuple[float, float]:
        total_in = sum(-cf.amount_usd for cf in cash_flows if cf.amount_usd < 0)
        total_out = sum(cf.amount_usd for cf in cash_flows if cf.amount_usd > 0)
        return total_in, total_out

    def _closed_form(self, deposit: CashFlowEntry, terminal: CashFlowEntry) -> float:
        days = terminal.days_from_start - deposit.days_from_start
        if days <= 0:
            return 0.0
        ratio = terminal.amount_usd / -deposit.amount_usd
        if ratio <= 0:
            return IRR_TOTAL_LOSS
        return _power(ratio, DAYS_PER_YEAR / days) - 1

    def _fallback(self, cash_flows: Sequence[CashFlowEntry], total_in: float, total_out: float) -> float:
        total_days = max(cf.days_from_start for cf in cash_flows)
        if total_days > 0 and total_in > 0:
            simple_return = (total_out - total_in) / total_in
            return _power(1 + simple_return, DAYS_PER_YEAR / total_days) - 1
        return 0.0

    def solve_irr(self, cash_flows: Sequence[CashFlowEntry]) -> float:
        """
        Returns the annual IRR as a decimal (0.10 == 10%).
        Deposits must be negative, withdrawals and the terminal value positive.
        """
        if not cash_flows:
            return 0.0

        total_in, total_out = self._totals(cash_flows)
        if total_in < USD_EPSILON:
            return 0.0

        if len(cash_flows) == 2 and cash_flows[0].amount_usd < 0 and cash_flows[1].amount_usd > 0:
            return self._closed_form(cash_flows[0], cash_flows[1])

        rate = (total_out - total_in) / total_in
        for _ in range(self.max_iterations):
            npv_val = self._npv(rate, cash_flows)
            derivative_val = self._npv_derivative(rate, cash_flows)
            if abs(derivative_val) < DERIVATIVE_EPSILON or not math.isfinite(derivative_val):
                logger.debug("IRR derivative vanished; using simple annualized fallback.")
                break

            new_rate = _clamp_rate(rate - npv_val / derivative_val)
            if abs(new_rate - rate) < self.tolerance:
                return new_rate
            rate = new_rate
        else:
            logger.debug(f"IRR did not converge in {self.max_iterations} iterations; using fallback.")

        return self._fallback(cash_flows, total_in, total_out)

    def compute_range_return(
        self, rows: Sequence[DailySeriesPoint]
    ) -> Tuple[Optional[float], int]:
        """
        Money-weighted return over a slice of a daily series, not annualized.
        The opening AUM is treated as a deposit on day 0, changes in cumulative
        deposits and withdrawals as flows, and the closing AUM as the terminal value.
        Returns (return_percent or None, days_elapsed).
        """
        if len(rows) < 2:
            return None, 0

        first, last = rows[0], rows[-1]
        days_elapsed = days_between(first.date, last.date) + 1

        cash_flows = []
        if first.aum_usd > USD_EPSILON:
            cash_flows.append(CashFlowEntry(-first.aum_usd, 0, first.date))

        prev_deposits, prev_withdrawals = first.deposits_cum_usd, first.withdrawals_cum_usd
        for row in rows[1:]:
            day_offset = days_between(first.date, row.date)
            deposit_delta = row.deposits_cum_usd - prev_deposits
            withdrawal_delta = row.withdrawals_cum_usd - prev_withdrawals
            if deposit_delta > 0:
                cash_flows.append(CashFlowEntry(-deposit_delta, day_offset, row.date))
            if withdrawal_delta > 0:
                cash_flows.append(CashFlowEntry(withdrawal_delta, day_offset, row.date))
            prev_deposits, prev_withdrawals = row.deposits_cum_usd, row.withdrawals_cum_usd

        if last.aum_usd > USD_EPSILON:
            cash_flows.append(CashFlowEntry(last.aum_usd, days_elapsed - 1, last.date))

        if len(cash_flows) < 2 or days_elapsed <= 0:
            return None, days_elapsed

        irr = self.solve_irr(cash_flows)
        if 1 + irr < 0:
            return None, days_elapsed
        period_return = _power(1 + irr, days_elapsed / DAYS_PER_YEAR) - 1
        if not math.isfinite(period_return):
            return None, days_elapsed
        return period_return * 100, days_elapsed
