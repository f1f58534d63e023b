# tests/unit/services/query_service/services/test_aum_valuator.py
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import UTC, date, datetime

from src.services.query_service.app.services.aum_valuator import AumValuator
from src.services.query_service.app.services.price_oracle import PriceCache, PriceKey, UsdRate
from vault_analytics_engine.exceptions import PriceUnavailableError
from vault_analytics_engine.models import Asset, VaultState

pytestmark = pytest.mark.asyncio

BTC = Asset("CRYPTO", "BTC")
ETH = Asset("CRYPTO", "ETH")
DAY_ONE = datetime(2025, 1, 1, 23, 59, 59, tzinfo=UTC)
DAY_TWO = datetime(2025, 1, 2, 23, 59, 59, tzinfo=UTC)


@pytest.fixture
def mock_oracle() -> MagicMock:
    oracle = MagicMock()
    oracle.get_usd_rate = AsyncMock(side_effect=lambda asset, at: UsdRate(
        {"BTC": 100000.0, "ETH": 4000.0}[asset.symbol], at, "TEST"
    ))
    return oracle


@pytest.fixture
def valuator(mock_oracle: MagicMock) -> AumValuator:
    return AumValuator(mock_oracle, PriceCache())


async def test_anchored_state_is_valued_without_prices(valuator: AumValuator, mock_oracle: MagicMock):
    state = VaultState(positions={BTC: 1.0}, last_valuation_usd=1200.0, net_flow_since_valuation_usd=-200.0)

    assert await valuator.compute_aum(state, DAY_ONE) == 1000.0
    mock_oracle.get_usd_rate.assert_not_awaited()


async def test_positions_are_marked_to_market(valuator: AumValuator, mock_oracle: MagicMock):
    """
    GIVEN a state with no valuation anchor
    WHEN it is valued twice on the same day
    THEN each asset is priced once and the second valuation is served from the cache.
    """
    # ARRANGE
    state = VaultState(positions={BTC: 0.5, ETH: 2.0, Asset("CRYPTO", "DUST"): 1e-15})

    # ACT
    first = await valuator.compute_aum(state, DAY_ONE)
    second = await valuator.compute_aum(state, DAY_ONE)

    # ASSERT
    assert first == second == pytest.approx(58000.0)
    assert mock_oracle.get_usd_rate.await_count == 2
    assert valuator.cache.get(PriceKey("CRYPTO", "BTC", date(2025, 1, 1))) is not None


async def test_missing_price_falls_back_to_last_cached_rate(valuator: AumValuator, mock_oracle: MagicMock):
    # ARRANGE
    state = VaultState(positions={BTC: 2.0})
    await valuator.compute_aum(state, DAY_ONE)
    mock_oracle.get_usd_rate.side_effect = PriceUnavailableError()

    # ACT
    aum = await valuator.compute_aum(state, DAY_TWO)

    # ASSERT
    assert aum == 200000.0
    assert valuator.cache.get(PriceKey("CRYPTO", "BTC", date(2025, 1, 2))) is None


async def test_never_priced_asset_is_valued_at_zero(valuator: AumValuator, mock_oracle: MagicMock):
    mock_oracle.get_usd_rate.side_effect = PriceUnavailableError()

    assert await valuator.compute_aum(VaultState(positions={ETH: 3.0}), DAY_ONE) == 0.0
