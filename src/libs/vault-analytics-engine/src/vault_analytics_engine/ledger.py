# src/libs/vault-analytics-engine/src/vault_analytics_engine/ledger.py
import logging
from dataclasses import replace
from datetime import date
from functools import reduce
from typing import Iterable, Iterator, List, Sequence, Tuple

from .constants import DEPOSIT, VALUATION, WITHDRAW
from .models import VaultEvent, VaultState

logger = logging.getLogger(__name__)


def sort_events(events: Iterable[VaultEvent]) -> List[VaultEvent]:
    """
    Orders ledger events ascending by timestamp. Python's sort is stable, so
    events sharing a timestamp keep the order the ledger returned them in.
    """
    return sorted(events, key=lambda e: e.at)


def _adjust_position(state: VaultState, event: VaultEvent, sign: int) -> dict:
    positions = dict(state.positions)
    positions[event.asset] = positions.get(event.asset, 0.0) + sign * event.amount
    return positions


def apply_event(state: VaultState, event: VaultEvent) -> VaultState:
    """Applies one event and returns the resulting state; the input is not modified."""
    if event.kind == DEPOSIT:
        usd = event.usd
        return replace(
            state,
            positions=_adjust_position(state, event, 1),
            deposited_cum_usd=state.deposited_cum_usd + usd,
            net_flow_since_valuation_usd=(
                state.net_flow_since_valuation_usd + usd
                if state.has_valuation_anchor
                else state.net_flow_since_valuation_usd
            ),
            first_deposit_date=state.first_deposit_date or event.day,
        )

    if event.kind == WITHDRAW:
        usd = event.usd
        return replace(
            state,
            positions=_adjust_position(state, event, -1),
            withdrawn_cum_usd=state.withdrawn_cum_usd + usd,
            net_flow_since_valuation_usd=(
                state.net_flow_since_valuation_usd - usd
                if state.has_valuation_anchor
                else state.net_flow_since_valuation_usd
            ),
        )

    if event.kind == VALUATION:
        # A valuation without a figure keeps the previous anchor.
        anchor = event.usd_value if event.usd_value is not None else state.last_valuation_usd
        return replace(state, last_valuation_usd=anchor, net_flow_since_valuation_usd=0.0)

    logger.debug(f"Ignoring ledger event of unknown kind '{event.kind}' in vault '{event.vault}'.")
    return state


def replay(events: Iterable[VaultEvent], initial: VaultState = None) -> VaultState:
    """Folds already-sorted events into a single state."""
    return reduce(apply_event, events, initial or VaultState())


def events_before(events: Sequence[VaultEvent], cutoff: date) -> List[VaultEvent]:
    """The sorted prefix of events dated strictly before `cutoff`."""
    prefix = []
    for event in events:
        if event.day >= cutoff:
            break
        prefix.append(event)
    return prefix


def replay_before(events: Sequence[VaultEvent], cutoff: date) -> VaultState:
    """State as of the end of the day before `cutoff`."""
    return replay(events_before(events, cutoff))


def iter_end_of_day_states(events: Sequence[VaultEvent]) -> Iterator[Tuple[date, VaultState]]:
    """
    Yields (event_date, state) once per distinct event date, with the state
    reflecting every event on or before that date.
    """
    state = VaultState()
    current_day = None
    for event in events:
        if current_day is not None and event.day != current_day:
            yield current_day, state
        current_day = event.day
        state = apply_event(state, event)
    if current_day is not None:
        yield current_day, state
