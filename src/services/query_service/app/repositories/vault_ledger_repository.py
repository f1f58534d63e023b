# src/services/query_service/app/repositories/vault_ledger_repository.py
import logging
from collections import defaultdict
from typing import Dict, List, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from vault_common.database_models import Vault, VaultEntry
from vault_common.utils import async_timed
from vault_analytics_engine.ledger import sort_events
from vault_analytics_engine.models import VaultEvent

logger = logging.getLogger(__name__)


def _to_event(row: VaultEntry) -> VaultEvent:
    return VaultEvent.create(
        vault=row.vault,
        kind=row.type,
        asset_type=row.asset_type,
        asset_symbol=row.asset_symbol,
        amount=row.amount,
        usd_value=row.usd_value,
        at=row.at,
        account=row.account,
        note=row.note,
    )


class VaultLedgerRepository:
    """
    Handles read-only database queries for vault ledger entries.
    Events are returned sorted by timestamp, ties kept in insertion order.
    """
    def __init__(self, db: AsyncSession):
        self.db = db

    @async_timed(repository="VaultLedgerRepository", method="list_vault_names")
    async def list_vault_names(self) -> List[str]:
        stmt = select(Vault.name).order_by(Vault.name.asc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    @async_timed(repository="VaultLedgerRepository", method="vault_exists")
    async def vault_exists(self, vault: str) -> bool:
        stmt = select(func.count()).select_from(Vault).where(Vault.name == vault)
        count = (await self.db.execute(stmt)).scalar()
        return bool(count)

    @async_timed(repository="VaultLedgerRepository", method="list_events")
    async def list_events(self, vault: str) -> List[VaultEvent]:
        stmt = (
            select(VaultEntry)
            .filter_by(vault=vault)
            .order_by(VaultEntry.at.asc(), VaultEntry.id.asc())
        )
        result = await self.db.execute(stmt)
        events = sort_events(_to_event(row) for row in result.scalars().all())
        logger.info(f"Found {len(events)} ledger events for vault '{vault}'.")
        return events

    @async_timed(repository="VaultLedgerRepository", method="list_events_for_vaults")
    async def list_events_for_vaults(self, vaults: Sequence[str]) -> Dict[str, List[VaultEvent]]:
        """
        Fetches the events of several vaults in one query. Every requested vault
        is present in the result, with an empty list when it has no events.
        """
        if not vaults:
            return {}

        stmt = (
            select(VaultEntry)
            .where(VaultEntry.vault.in_(list(vaults)))
            .order_by(VaultEntry.at.asc(), VaultEntry.id.asc())
        )
        result = await self.db.execute(stmt)

        grouped = defaultdict(list)
        for row in result.scalars().all():
            grouped[row.vault].append(_to_event(row))

        logger.info(f"Found ledger events for {len(grouped)} of {len(vaults)} requested vaults.")
        return {vault: sort_events(grouped.get(vault, [])) for vault in vaults}
