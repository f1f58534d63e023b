# src/libs/vault-analytics-engine/src/vault_analytics_engine/twrr.py
import math
from typing import Optional, Sequence, Tuple

from .constants import USD_EPSILON
from .helpers import days_between, finite_or_zero
from .models import DailySeriesPoint


class TwrrChain:
    """
    Time-weighted return built by chaining sub-period returns between
    consecutive observations. Flows are netted out of each link, so the result
    does not depend on the size or timing of deposits and withdrawals.
    """

    def __init__(self):
        self.factor = 1.0
        self._prev: Optional[Tuple[float, float, float]] = None

    def update(self, aum: float, deposits_cum: float, withdrawals_cum: float) -> float:
        """Links the observation to the previous one and returns the TWRR in percent."""
        if self._prev is not None:
            prev_aum, prev_deposits, prev_withdrawals = self._prev
            if prev_aum > USD_EPSILON:
                net_flow = (deposits_cum - prev_deposits) - (withdrawals_cum - prev_withdrawals)
                link = 1 + (aum - prev_aum - net_flow) / prev_aum
                # A sub-period loss of 100% or more wipes the chain out for good.
                self.factor = 0.0 if link <= 0 else self.factor * link

        self._prev = (
            finite_or_zero(aum),
            finite_or_zero(deposits_cum),
            finite_or_zero(withdrawals_cum),
        )
        return self.percent

    @property
    def percent(self) -> float:
        return finite_or_zero((self.factor - 1) * 100)


def range_twrr(rows: Sequence[DailySeriesPoint]) -> Tuple[Optional[float], int]:
    """TWRR chained only within the given slice. Returns (percent or None, days_elapsed)."""
    if len(rows) < 2:
        return None, 0

    days_elapsed = days_between(rows[0].date, rows[-1].date) + 1
    chain = TwrrChain()
    for row in rows:
        chain.update(row.aum_usd, row.deposits_cum_usd, row.withdrawals_cum_usd)

    twrr = (chain.factor - 1) * 100
    if not math.isfinite(twrr):
        return None, days_elapsed
    return twrr, days_elapsed
