# src/libs/vault-analytics-engine/src/vault_analytics_engine/cashflows.py
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import DEPOSIT, USD_EPSILON, WITHDRAW
from .helpers import days_between
from .models import CashFlowEntry, VaultEvent


def extract_cash_flows(
    events: Iterable[VaultEvent], first_deposit_date: Optional[date] = None
) -> List[CashFlowEntry]:
    """
    Turns sorted deposit/withdrawal events into signed, day-indexed cash flows
    anchored at the first deposit. Deposits are negative, withdrawals positive.
    Withdrawals before any deposit and flows worth less than USD_EPSILON are skipped.
    """
    anchor = first_deposit_date
    flows: List[CashFlowEntry] = []
    for event in events:
        if event.kind == DEPOSIT:
            if anchor is None:
                anchor = event.day
            if event.usd > USD_EPSILON:
                flows.append(CashFlowEntry(-event.usd, days_between(anchor, event.day), event.day))
        elif event.kind == WITHDRAW:
            if anchor is not None and event.usd > USD_EPSILON:
                flows.append(CashFlowEntry(event.usd, days_between(anchor, event.day), event.day))
    return flows


def combine_cash_flows(
    events_by_vault: Dict[str, Sequence[VaultEvent]], end: date
) -> Tuple[Optional[date], List[CashFlowEntry]]:
    """
    Builds one cash-flow list across several vaults, from the earliest deposit of
    any of them up to and including `end`. Returns (inception_date, flows).
    """
    raw: List[Tuple[date, float]] = []
    inception: Optional[date] = None
    for events in events_by_vault.values():
        for event in events:
            if event.day > end or event.usd <= USD_EPSILON:
                continue
            if event.kind == DEPOSIT:
                if inception is None or event.day < inception:
                    inception = event.day
                raw.append((event.day, -event.usd))
            elif event.kind == WITHDRAW:
                raw.append((event.day, event.usd))

    if inception is None:
        return None, []

    raw.sort(key=lambda flow: flow[0])
    flows = [
        CashFlowEntry(amount, days_between(inception, flow_date), flow_date)
        for flow_date, amount in raw
        if flow_date >= inception
    ]
    return inception, flows


def flows_up_to(flows: Iterable[CashFlowEntry], day: date) -> List[CashFlowEntry]:
    return [cf for cf in flows if cf.date is None or cf.date <= day]


def with_terminal_value(
    flows: Iterable[CashFlowEntry], aum: float, days_elapsed: int
) -> List[CashFlowEntry]:
    """Appends the current AUM as a final outflow on the last elapsed day."""
    return list(flows) + [CashFlowEntry(aum, days_elapsed - 1)]
