# tests/unit/libs/vault-analytics-engine/unit/test_series.py
from datetime import date, timedelta

import pytest

from vault_analytics_engine.constants import DEPOSIT, VALUATION, WITHDRAW
from vault_analytics_engine.helpers import date_range
from vault_analytics_engine.ledger import replay
from vault_analytics_engine.models import CashFlowEntry
from vault_analytics_engine.series import DailyMetricsCalculator, VaultSeriesCursor, latest_apr

START = date(2024, 1, 1)


def _anchored_aum(state):
    if state.has_valuation_anchor:
        return state.last_valuation_usd + state.net_flow_since_valuation_usd
    return state.net_contributed_usd


def test_liquidated_day_holds_previous_apr():
    """
    GIVEN a vault that gained 10% and was then fully withdrawn
    WHEN the day after the withdrawal is computed
    THEN its APR stays at the last value instead of dropping to zero.
    """
    calculator = DailyMetricsCalculator()
    flows = [CashFlowEntry(-1000, 0, START), CashFlowEntry(1100, 2, START + timedelta(days=2))]

    calculator.next_point(START, 1000, 1000, 0, flows, START)
    second = calculator.next_point(START + timedelta(days=1), 1100, 1000, 0, flows, START)
    third = calculator.next_point(START + timedelta(days=2), 0, 1000, 1100, flows, START)

    assert second.apr_percent == pytest.approx(10.0)
    assert third.apr_percent == pytest.approx(10.0)
    assert third.aum_usd == 0
    assert third.pnl_usd == pytest.approx(100)
    assert third.roi_percent == 0.0


def test_total_loss_reports_realized_roi():
    calculator = DailyMetricsCalculator()
    flows = [CashFlowEntry(-1000, 0, START)]

    calculator.next_point(START, 1000, 1000, 0, flows, START)
    point = calculator.next_point(START + timedelta(days=1), 0, 1000, 0, flows, START)

    assert point.roi_percent == pytest.approx(-100.0)
    assert point.apr_percent == pytest.approx(-100.0)
    assert point.twrr_percent == pytest.approx(-100.0)


def test_no_apr_before_first_deposit():
    point = DailyMetricsCalculator().next_point(START, 0, 0, 0, [], None)

    assert point.apr_percent == 0.0
    assert point.roi_percent == 0.0


def test_cursor_builds_deposit_then_valuation_series(make_event):
    """
    1000 deposited, valued at 1200 ninety days later: PnL 200, ROI 20%,
    APR equal to the annualized single-deposit return.
    """
    valuation_day = START + timedelta(days=90)
    events = [
        make_event(DEPOSIT, START, usd=1000),
        make_event(VALUATION, valuation_day, usd=1200, amount=0),
    ]

    cursor = VaultSeriesCursor(events)
    points = []
    for day in date_range(START, valuation_day):
        state = cursor.advance_to(day)
        points.append(cursor.emit(day, _anchored_aum(state)))

    assert len(points) == 91
    last = points[-1]
    assert last.aum_usd == pytest.approx(1200)
    assert last.pnl_usd == pytest.approx(200)
    assert last.roi_percent == pytest.approx(20.0)
    assert last.apr_percent == pytest.approx((1.2 ** (365 / 90) - 1) * 100)
    assert last.twrr_percent == pytest.approx(20.0)
    assert points[0].apr_percent == 0.0


def test_latest_apr_branches(make_event):
    events = [
        make_event(DEPOSIT, START, usd=1000),
        make_event(WITHDRAW, START + timedelta(days=40), usd=1000),
    ]
    state = replay(events)

    assert latest_apr(events, state, 0.0, 0.0, START + timedelta(days=50), liquidation_apr=7.5) == 7.5
    assert latest_apr(events, state, 0.0, 0.0, START + timedelta(days=50)) == 0.0

    invested = replay(events[:1])
    assert latest_apr(events[:1], invested, 0.0, -100.0, START + timedelta(days=50)) == -100.0
    assert latest_apr([], replay([]), 100.0, 0.0, START) == 0.0
