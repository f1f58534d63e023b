# src/services/query_service/app/services/vault_aggregate_service.py
import logging
import asyncio
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from vault_common.config import REPORT_EXCLUDED_VAULTS
from vault_common.monitoring import REPORT_GENERATION_DURATION_SECONDS
from vault_analytics_engine.aggregation import AggregateSummary, aggregate_series, build_aggregate_summary
from vault_analytics_engine.exceptions import VaultNotFoundError

from ..repositories.vault_ledger_repository import VaultLedgerRepository
from ..dtos.vault_report_dto import AggregateSeriesResponse, AggregateSummary as AggregateSummaryDTO
from .price_oracle import PriceCache, usd_to_vnd
from .vault_series_service import VaultSeriesService, to_point_record, today_utc

logger = logging.getLogger(__name__)


def _summary_dto(summary: Optional[AggregateSummary], vnd_rate: float) -> Optional[AggregateSummaryDTO]:
    if summary is None:
        return None
    return AggregateSummaryDTO(
        aum_usd=summary.aum_usd,
        aum_vnd=summary.aum_usd * vnd_rate,
        pnl_usd=summary.pnl_usd,
        pnl_vnd=summary.pnl_usd * vnd_rate,
        apr_percent=summary.apr_percent,
        roi_percent=summary.roi_percent,
        twrr_percent=summary.twrr_percent,
        aum_change_usd=summary.aum_change_usd,
        aum_change_vnd=summary.aum_change_usd * vnd_rate,
        aum_change_percent=summary.aum_change_percent,
        pnl_change_usd=summary.pnl_change_usd,
        pnl_change_vnd=summary.pnl_change_usd * vnd_rate,
        pnl_change_percent=summary.pnl_change_percent,
        apr_change_percent_points=summary.apr_change_percent_points,
        roi_change_percent_points=summary.roi_change_percent_points,
        twrr_change_percent_points=summary.twrr_change_percent_points,
        apr_eligible=summary.apr_eligible,
        days_elapsed=summary.days_elapsed,
        range_return_percent=summary.range_return_percent,
        range_days_elapsed=summary.range_days_elapsed,
        range_twrr_percent=summary.range_twrr_percent,
        range_twrr_days_elapsed=summary.range_twrr_days_elapsed,
    )


class VaultAggregateService:
    """
    Handles the cross-vault report: one daily series for a set of vaults with
    returns recomputed over the combined figures.
    """
    def __init__(self, db: AsyncSession, price_cache: Optional[PriceCache] = None):
        self.db = db
        self.ledger_repo = VaultLedgerRepository(db)
        self.series_service = VaultSeriesService(db, price_cache)

    async def resolve_target_vaults(
        self, vault_names: Optional[Sequence[str]] = None, exclude: Optional[Sequence[str]] = None
    ) -> List[str]:
        """
        Explicit names must all exist. Without them every known vault is targeted,
        minus REPORT_EXCLUDED_VAULTS unless an exclusion list is given.
        """
        known = await self.ledger_repo.list_vault_names()

        if vault_names:
            unknown = [name for name in vault_names if name not in known]
            if unknown:
                raise VaultNotFoundError(f"Vaults not found: {', '.join(unknown)}.")
            targets = list(dict.fromkeys(vault_names))
        else:
            targets = known
            if exclude is None:
                exclude = REPORT_EXCLUDED_VAULTS

        excluded = set(exclude or [])
        return [name for name in targets if name not in excluded]

    async def get_aggregate_series(
        self,
        vault_names: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> AggregateSeriesResponse:
        targets = await self.resolve_target_vaults(vault_names, exclude)
        end = end or today_utc()
        logger.info(f"Building aggregate series for {len(targets)} vaults up to {end}.")

        with REPORT_GENERATION_DURATION_SECONDS.labels(report="aggregate").time():
            events_by_vault = await self.ledger_repo.list_events_for_vaults(targets)

            per_vault_series = await asyncio.gather(
                *[
                    self.series_service.build_daily_series(events_by_vault.get(name, []), end=end)
                    for name in targets
                ]
            )
            points, inception = aggregate_series(
                dict(zip(targets, per_vault_series)), events_by_vault, end, start=start
            )
            summary = build_aggregate_summary(points, inception)
            vnd_rate = await usd_to_vnd(self.series_service.oracle)

        return AggregateSeriesResponse(
            vaults=targets,
            series=[to_point_record(point, vnd_rate) for point in points],
            summary=_summary_dto(summary, vnd_rate),
        )
