# src/services/query_service/app/repositories/asset_price_repository.py
import logging
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from vault_common.database_models import AssetPrice
from vault_common.utils import async_timed

logger = logging.getLogger(__name__)


class AssetPriceRepository:
    """
    Handles read-only database queries for asset USD rates.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @async_timed(repository="AssetPriceRepository", method="get_latest_price")
    async def get_latest_price(
        self, asset_type: str, symbol: str, on_or_before: date
    ) -> Optional[AssetPrice]:
        """
        Retrieves the most recent price of an asset dated on or before the given day.
        """
        stmt = (
            select(AssetPrice)
            .filter_by(asset_type=asset_type, symbol=symbol)
            .filter(AssetPrice.price_date <= on_or_before)
            .order_by(AssetPrice.price_date.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        price = result.scalars().first()
        if price is None:
            logger.info(f"No price found for '{asset_type}:{symbol}' on or before {on_or_before}.")
        return price
