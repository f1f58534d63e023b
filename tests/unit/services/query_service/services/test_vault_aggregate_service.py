# tests/unit/services/query_service/services/test_vault_aggregate_service.py
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from datetime import UTC, date, datetime, time

from sqlalchemy.ext.asyncio import AsyncSession
from src.services.query_service.app.services.vault_aggregate_service import VaultAggregateService
from src.services.query_service.app.services.price_oracle import PriceCache, UsdRate
from vault_analytics_engine.constants import DEPOSIT, VALUATION, WITHDRAW
from vault_analytics_engine.exceptions import VaultNotFoundError
from vault_analytics_engine.models import VaultEvent

pytestmark = pytest.mark.asyncio

MODULE = "src.services.query_service.app.services"
END = date(2024, 4, 30)


def _event(vault, kind, day, usd, amount=None):
    return VaultEvent.create(
        vault=vault,
        kind=kind,
        asset_type="CRYPTO",
        asset_symbol="USDT",
        amount=usd if amount is None else amount,
        usd_value=usd,
        at=datetime.combine(day, time(12, 0), tzinfo=UTC),
    )


@pytest.fixture
def events_by_vault():
    return {
        "alpha": [
            _event("alpha", DEPOSIT, date(2024, 1, 1), 1000),
            _event("alpha", VALUATION, date(2024, 1, 1), 1000, amount=0),
            _event("alpha", VALUATION, date(2024, 3, 1), 1100, amount=0),
        ],
        "beta": [
            _event("beta", DEPOSIT, date(2024, 2, 1), 500),
            _event("beta", VALUATION, date(2024, 2, 1), 500, amount=0),
            _event("beta", VALUATION, date(2024, 4, 1), 560, amount=0),
        ],
    }


@pytest.fixture
def mock_ledger_repo(events_by_vault) -> AsyncMock:
    repo = AsyncMock()
    repo.list_vault_names.return_value = ["alpha", "beta"]
    repo.list_events_for_vaults.side_effect = lambda names: {
        name: events_by_vault.get(name, []) for name in names
    }
    return repo


@pytest.fixture
def mock_oracle() -> MagicMock:
    oracle = MagicMock()
    oracle.get_usd_rate = AsyncMock(return_value=UsdRate(0.00004, datetime.now(UTC), "TEST"))
    return oracle


@pytest.fixture
def service(mock_ledger_repo: AsyncMock, mock_oracle: MagicMock) -> VaultAggregateService:
    with patch(
        f"{MODULE}.vault_aggregate_service.VaultLedgerRepository", return_value=mock_ledger_repo
    ), patch(
        f"{MODULE}.vault_series_service.VaultLedgerRepository", return_value=mock_ledger_repo
    ), patch(
        f"{MODULE}.vault_series_service.AssetPriceOracle", return_value=mock_oracle
    ), patch(
        f"{MODULE}.vault_aggregate_service.REPORT_EXCLUDED_VAULTS", []
    ):
        yield VaultAggregateService(AsyncMock(spec=AsyncSession), price_cache=PriceCache())


async def test_unknown_vault_names_raise(service: VaultAggregateService):
    with pytest.raises(VaultNotFoundError, match="zeta"):
        await service.resolve_target_vaults(["alpha", "zeta"])


async def test_explicit_names_are_deduplicated_and_excluded(service: VaultAggregateService):
    assert await service.resolve_target_vaults(["beta", "alpha", "beta"]) == ["beta", "alpha"]
    assert await service.resolve_target_vaults(["beta", "alpha"], exclude=["alpha"]) == ["beta"]


async def test_default_exclusions_apply_only_without_an_exclude_list(service: VaultAggregateService):
    with patch(f"{MODULE}.vault_aggregate_service.REPORT_EXCLUDED_VAULTS", ["beta"]):
        assert await service.resolve_target_vaults() == ["alpha"]
        assert await service.resolve_target_vaults(exclude=[]) == ["alpha", "beta"]
        assert await service.resolve_target_vaults(["beta"]) == ["beta"]


async def test_aggregate_series_sums_vaults(service: VaultAggregateService, mock_ledger_repo: AsyncMock):
    """
    GIVEN two vaults that started a month apart
    WHEN the aggregate series is requested
    THEN figures are summed per day from the earliest first event,
    and the summary reflects the latest point.
    """
    # ACT
    response = await service.get_aggregate_series(end=END)

    # ASSERT
    mock_ledger_repo.list_events_for_vaults.assert_awaited_once_with(["alpha", "beta"])
    assert response.vaults == ["alpha", "beta"]
    assert len(response.series) == 121
    assert response.series[0].aum_usd == pytest.approx(1000)

    last = response.series[-1]
    assert last.date == END
    assert last.aum_usd == pytest.approx(1660)
    assert last.pnl_usd == pytest.approx(160)
    assert last.deposits_cum_usd == pytest.approx(1500)
    assert last.aum_vnd == pytest.approx(1660 * 25000)

    summary = response.summary
    assert summary.aum_usd == pytest.approx(1660)
    assert summary.days_elapsed == 121
    assert summary.apr_eligible is True
    assert summary.aum_change_usd == pytest.approx(0.0)


async def test_aggregate_apr_matches_across_windows(service: VaultAggregateService):
    full = await service.get_aggregate_series(end=END)
    narrow = await service.get_aggregate_series(start=date(2024, 3, 15), end=END)

    full_by_date = {point.date: point for point in full.series}
    assert narrow.series[0].date == date(2024, 3, 15)
    for point in narrow.series:
        assert point.apr_percent == pytest.approx(full_by_date[point.date].apr_percent)
        assert point.roi_percent == pytest.approx(full_by_date[point.date].roi_percent)


async def test_aggregate_window_after_full_exit_keeps_frozen_apr(
    service: VaultAggregateService, mock_ledger_repo: AsyncMock
):
    """
    GIVEN a vault valued at 1100 on day 59 and fully withdrawn on day 60
    WHEN the aggregate is requested for a window that starts after the exit
    THEN the returned days carry the APR of day 59 instead of resetting to zero.
    """
    # ARRANGE
    exited = [
        _event("gamma", DEPOSIT, date(2024, 1, 1), 1000),
        _event("gamma", VALUATION, date(2024, 1, 1), 1000, amount=0),
        _event("gamma", VALUATION, date(2024, 2, 29), 1100, amount=0),
        _event("gamma", WITHDRAW, date(2024, 3, 1), 1100),
    ]
    mock_ledger_repo.list_vault_names.return_value = ["gamma"]
    mock_ledger_repo.list_events_for_vaults.side_effect = lambda names: {"gamma": exited}

    # ACT
    response = await service.get_aggregate_series(start=date(2024, 3, 31), end=END)

    # ASSERT
    assert response.series[0].date == date(2024, 3, 31)
    assert len(response.series) == 31
    for point in response.series:
        assert point.aum_usd == pytest.approx(0.0)
        assert point.apr_percent == pytest.approx((1.1 ** (365 / 59) - 1) * 100)
    assert response.summary.apr_percent == pytest.approx((1.1 ** (365 / 59) - 1) * 100)


async def test_aggregate_of_vaults_without_events_is_empty(
    service: VaultAggregateService, mock_ledger_repo: AsyncMock
):
    mock_ledger_repo.list_vault_names.return_value = ["alpha", "beta", "gamma"]

    response = await service.get_aggregate_series(vault_names=["gamma"], end=END)

    assert response.vaults == ["gamma"]
    assert response.series == []
    assert response.summary is None
