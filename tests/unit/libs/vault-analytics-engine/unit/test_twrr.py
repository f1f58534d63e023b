# tests/unit/libs/vault-analytics-engine/unit/test_twrr.py
from datetime import date, timedelta

import pytest

from vault_analytics_engine.models import DailySeriesPoint
from vault_analytics_engine.twrr import TwrrChain, range_twrr


def _chain(observations):
    chain = TwrrChain()
    result = None
    for aum, deposits, withdrawals in observations:
        result = chain.update(aum, deposits, withdrawals)
    return result


def test_twrr_ignores_size_and_timing_of_flows():
    """
    GIVEN two vaults earning 10% in each of two periods
    WHEN one of them receives a large deposit in between
    THEN both report the same 21% time-weighted return.
    """
    steady = [(1000, 1000, 0), (1100, 1000, 0), (1210, 1000, 0)]
    topped_up = [(1000, 1000, 0), (6100, 6000, 0), (6710, 6000, 0)]

    assert _chain(steady) == pytest.approx(21.0)
    assert _chain(topped_up) == pytest.approx(21.0)


def test_withdrawals_are_netted_out():
    assert _chain([(1000, 1000, 0), (550, 1000, 500)]) == pytest.approx(5.0)


def test_total_loss_zeroes_the_chain_for_good():
    chain = TwrrChain()
    chain.update(1000, 1000, 0)

    assert chain.update(0, 1000, 0) == pytest.approx(-100.0)
    chain.update(500, 1500, 0)
    assert chain.update(600, 1500, 0) == pytest.approx(-100.0)


def test_no_link_from_an_empty_vault():
    assert _chain([(0, 0, 0), (1000, 1000, 0)]) == 0.0


def test_range_twrr_only_chains_inside_the_slice():
    start = date(2024, 1, 1)
    rows = [
        DailySeriesPoint(start + timedelta(days=i), aum, 1000, 0, 0.0, 0.0, 0.0, 0.0)
        for i, aum in enumerate([1000, 2000, 2200])
    ]

    percent, days = range_twrr(rows[1:])

    assert days == 2
    assert percent == pytest.approx(10.0)


def test_range_twrr_needs_two_points():
    assert range_twrr([]) == (None, 0)
