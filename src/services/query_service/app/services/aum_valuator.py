# src/services/query_service/app/services/aum_valuator.py
import logging
from datetime import datetime
from typing import Mapping

from vault_common.monitoring import observe_price_lookup
from vault_analytics_engine.constants import UNIT_EPSILON
from vault_analytics_engine.exceptions import PriceUnavailableError
from vault_analytics_engine.models import Asset, VaultState

from .price_oracle import PRICE_CACHE, PriceCache, PriceKey, PriceOracle

logger = logging.getLogger(__name__)


class AumValuator:
    """
    Values a vault state in USD. A valuation anchor is used as is; otherwise
    positions are marked to market through the price cache, asking the oracle
    only for (asset, day) pairs not seen before.
    """

    def __init__(self, oracle: PriceOracle, cache: PriceCache = PRICE_CACHE):
        self.oracle = oracle
        self.cache = cache

    async def compute_aum(self, state: VaultState, as_of: datetime) -> float:
        if state.has_valuation_anchor:
            return state.last_valuation_usd + state.net_flow_since_valuation_usd
        return await self.mark_to_market(state.positions, as_of)

    async def mark_to_market(self, positions: Mapping[Asset, float], as_of: datetime) -> float:
        total = 0.0
        for asset, units in positions.items():
            if abs(units) < UNIT_EPSILON:
                continue
            total += units * await self._rate(asset, as_of)
        return total

    async def _rate(self, asset: Asset, as_of: datetime) -> float:
        key = PriceKey(asset.type, asset.symbol, as_of.date())
        cached = self.cache.get(key)
        if cached is not None:
            observe_price_lookup("cache_hit")
            return cached

        try:
            usd_rate = await self.oracle.get_usd_rate(asset, as_of)
        except PriceUnavailableError as e:
            fallback = self.cache.latest_for(asset.type, asset.symbol)
            if fallback is None:
                observe_price_lookup("missing")
                logger.warning(f"No USD rate for '{asset.key}' on {key.day}; valuing it at 0. {e.message}")
                return 0.0
            observe_price_lookup("fallback")
            logger.warning(f"No USD rate for '{asset.key}' on {key.day}; using last cached rate {fallback}.")
            return fallback

        self.cache.put(key, usd_rate.rate_usd)
        observe_price_lookup("fetched")
        return usd_rate.rate_usd
