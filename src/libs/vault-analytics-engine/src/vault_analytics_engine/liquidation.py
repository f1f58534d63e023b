# src/libs/vault-analytics-engine/src/vault_analytics_engine/liquidation.py
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from .apr import compute_apr
from .cashflows import extract_cash_flows, with_terminal_value
from .constants import USD_EPSILON
from .helpers import compute_pnl, compute_roi_percent, days_between
from .ledger import events_before, iter_end_of_day_states, replay_before
from .models import VaultEvent, VaultState


def is_liquidated(state: VaultState) -> bool:
    """
    A vault is liquidated when every contributed dollar has been withdrawn and
    nothing is left in it: the anchored AUM is ~0, or with no anchor every
    position is ~0 units.
    """
    if not state.net_contributed_usd < USD_EPSILON:
        return False
    if state.has_valuation_anchor:
        return abs(state.last_valuation_usd + state.net_flow_since_valuation_usd) < USD_EPSILON
    return not state.has_open_positions()


def find_liquidation_date(events: Sequence[VaultEvent]) -> Optional[date]:
    """Date of the most recent end-of-day transition into the liquidated state."""
    liquidation_date = None
    was_liquidated = False
    for day, state in iter_end_of_day_states(events):
        liquidated = is_liquidated(state)
        if liquidated and not was_liquidated:
            liquidation_date = day
        was_liquidated = liquidated
    return liquidation_date


def state_before_liquidation(
    events: Sequence[VaultEvent], liquidation_date: date
) -> Tuple[date, List[VaultEvent], VaultState]:
    """Returns (day_before, events_before, state) as of the end of the day before liquidation."""
    return (
        liquidation_date - timedelta(days=1),
        events_before(events, liquidation_date),
        replay_before(events, liquidation_date),
    )


def apr_before_liquidation(
    state_before: VaultState,
    events_before_liquidation: Sequence[VaultEvent],
    day_before: date,
    aum_before: float,
    first_deposit_date: Optional[date] = None,
) -> float:
    """
    APR of the vault as it stood at the end of the day before it was liquidated,
    so a fully exited vault keeps reporting the return it realized. Unclamped.
    """
    first_deposit = state_before.first_deposit_date or first_deposit_date
    if first_deposit is None or day_before < first_deposit:
        return 0.0

    net_contributed = state_before.net_contributed_usd
    pnl = compute_pnl(aum_before, state_before.deposited_cum_usd, state_before.withdrawn_cum_usd)
    roi_percent = compute_roi_percent(pnl, net_contributed)

    if aum_before < USD_EPSILON:
        return 0.0 if net_contributed < USD_EPSILON else roi_percent

    days_elapsed = max(1, days_between(first_deposit, day_before) + 1)
    flows = extract_cash_flows(events_before_liquidation, first_deposit)
    return compute_apr(
        with_terminal_value(flows, aum_before, days_elapsed),
        days_elapsed,
        roi_percent / 100,
    )
