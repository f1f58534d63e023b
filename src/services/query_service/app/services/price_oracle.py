# src/services/query_service/app/services/price_oracle.py
import asyncio
import logging
from datetime import UTC, date, datetime
from typing import Dict, NamedTuple, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession
from vault_common.config import USD_VND_FALLBACK_RATE
from vault_analytics_engine.exceptions import PriceUnavailableError
from vault_analytics_engine.helpers import coerce_float
from vault_analytics_engine.models import Asset

from ..repositories.asset_price_repository import AssetPriceRepository

logger = logging.getLogger(__name__)

USD = Asset("FIAT", "USD")
VND = Asset("FIAT", "VND")


class UsdRate(NamedTuple):
    rate_usd: float
    timestamp: datetime
    source: str


class PriceKey(NamedTuple):
    asset_type: str
    symbol: str
    day: date


class PriceOracle(Protocol):
    async def get_usd_rate(self, asset: Asset, at: Optional[datetime] = None) -> UsdRate:
        """Returns the USD rate of one unit of `asset` at `at`, or raises PriceUnavailableError."""
        ...


class PriceCache:
    """
    USD rates keyed by (asset type, symbol, day). Entries are written once and
    never invalidated; writing the same key again is harmless.
    """

    def __init__(self):
        self._rates: Dict[PriceKey, float] = {}

    def get(self, key: PriceKey) -> Optional[float]:
        return self._rates.get(key)

    def put(self, key: PriceKey, rate_usd: float) -> None:
        self._rates[key] = rate_usd

    def latest_for(self, asset_type: str, symbol: str) -> Optional[float]:
        """The rate cached for the asset on its most recent cached day, if any."""
        days = [key for key in self._rates if key.asset_type == asset_type and key.symbol == symbol]
        if not days:
            return None
        return self._rates[max(days, key=lambda key: key.day)]


# Shared by every request served by this process.
PRICE_CACHE = PriceCache()


class AssetPriceOracle:
    """
    Price oracle backed by the asset_prices table. USD itself is fixed at 1.
    Queries are serialized because the session they share does not allow
    concurrent operations.
    """

    def __init__(self, db: AsyncSession):
        self.repo = AssetPriceRepository(db)
        self._lock = asyncio.Lock()

    async def get_usd_rate(self, asset: Asset, at: Optional[datetime] = None) -> UsdRate:
        at = at or datetime.now(UTC)
        if asset == USD:
            return UsdRate(1.0, at, "FIXED")

        async with self._lock:
            price = await self.repo.get_latest_price(asset.type, asset.symbol, at.date())

        if price is None:
            raise PriceUnavailableError(f"No USD rate for '{asset.key}' on or before {at.date()}.")
        return UsdRate(coerce_float(price.rate_usd), at, price.source or "DB")


async def usd_to_vnd(oracle: PriceOracle, at: Optional[datetime] = None) -> float:
    """
    VND per USD, derived from the USD rate of one VND. Falls back to
    USD_VND_FALLBACK_RATE when the rate is missing or not positive.
    """
    try:
        vnd = await oracle.get_usd_rate(VND, at)
    except Exception as e:
        logger.warning(f"USD to VND rate lookup failed, using fallback {USD_VND_FALLBACK_RATE}: {e}")
        return USD_VND_FALLBACK_RATE

    if vnd.rate_usd <= 0:
        logger.warning(f"Non-positive VND rate {vnd.rate_usd}, using fallback {USD_VND_FALLBACK_RATE}.")
        return USD_VND_FALLBACK_RATE
    return 1 / vnd.rate_usd
