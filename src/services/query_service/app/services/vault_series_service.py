# src/services/query_service/app/services/vault_series_service.py
import asyncio
import logging
from datetime import UTC, date, datetime
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from vault_common.monitoring import REPORT_GENERATION_DURATION_SECONDS
from vault_analytics_engine.apr import clamp_apr
from vault_analytics_engine.constants import USD_EPSILON
from vault_analytics_engine.exceptions import VaultNotFoundError
from vault_analytics_engine.helpers import (
    compute_pnl,
    compute_roi_percent,
    date_range,
    end_of_day,
    finite_or_zero,
)
from vault_analytics_engine.ledger import iter_end_of_day_states, replay
from vault_analytics_engine.liquidation import (
    apr_before_liquidation,
    find_liquidation_date,
    state_before_liquidation,
)
from vault_analytics_engine.models import DailySeriesPoint, LatestMetrics, VaultEvent
from vault_analytics_engine.series import VaultSeriesCursor, latest_apr
from vault_analytics_engine.twrr import TwrrChain

from ..repositories.vault_ledger_repository import VaultLedgerRepository
from ..dtos.vault_report_dto import (
    DailySeriesPointRecord,
    VaultHeaderResponse,
    VaultSeriesResponse,
    VaultsSummaryResponse,
    VaultSummaryRow,
    VaultSummaryTotals,
)
from .aum_valuator import AumValuator
from .price_oracle import PRICE_CACHE, AssetPriceOracle, PriceCache, usd_to_vnd

logger = logging.getLogger(__name__)


def today_utc() -> date:
    return datetime.now(UTC).date()


def to_point_record(point: DailySeriesPoint, vnd_rate: float) -> DailySeriesPointRecord:
    return DailySeriesPointRecord(
        **point.to_dict(),
        aum_vnd=point.aum_usd * vnd_rate,
        pnl_vnd=point.pnl_usd * vnd_rate,
    )


class VaultSeriesService:
    """
    Builds the per-vault reports: the daily series, the header metrics and
    the latest-metrics summary across all vaults.
    """
    def __init__(self, db: AsyncSession, price_cache: Optional[PriceCache] = None):
        self.db = db
        self.ledger_repo = VaultLedgerRepository(db)
        self.oracle = AssetPriceOracle(db)
        self.valuator = AumValuator(self.oracle, PRICE_CACHE if price_cache is None else price_cache)

    async def _require_vault(self, vault: str) -> None:
        if not await self.ledger_repo.vault_exists(vault):
            raise VaultNotFoundError(f"Vault '{vault}' not found.")

    async def build_daily_series(
        self,
        events: Sequence[VaultEvent],
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DailySeriesPoint]:
        """
        One point per calendar day from `start` (default: the first event) to
        `end` (default: today). Days are valued at 23:59:59 UTC. The walk always
        begins at the first event so the carried APR and the TWRR chain do not
        depend on `start`, which only trims the returned points.
        """
        if not events:
            return []

        first_day = events[0].day
        walk_from = min(start, first_day) if start else first_day
        end = end or today_utc()

        cursor = VaultSeriesCursor(events)
        points = []
        for day in date_range(walk_from, end):
            state = cursor.advance_to(day)
            aum = await self.valuator.compute_aum(state, end_of_day(day))
            point = cursor.emit(day, aum)
            if start is None or day >= start:
                points.append(point)
        return points

    async def get_daily_series(
        self, vault: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> VaultSeriesResponse:
        await self._require_vault(vault)
        logger.info(f"Building daily series for vault '{vault}' from {start or 'inception'} to {end or 'today'}.")

        with REPORT_GENERATION_DURATION_SECONDS.labels(report="series").time():
            events = await self.ledger_repo.list_events(vault)
            points = await self.build_daily_series(events, start, end)
            vnd_rate = await usd_to_vnd(self.oracle)

        return VaultSeriesResponse(
            vault=vault, series=[to_point_record(point, vnd_rate) for point in points]
        )

    async def _liquidation_apr(self, events: Sequence[VaultEvent], first_deposit: date) -> float:
        liquidation_date = find_liquidation_date(events)
        if liquidation_date is None:
            return 0.0

        day_before, prefix, state_before = state_before_liquidation(events, liquidation_date)
        if day_before < first_deposit:
            return 0.0

        aum_before = await self.valuator.compute_aum(state_before, end_of_day(day_before))
        logger.info(f"Vault liquidated on {liquidation_date}; reporting APR as of {day_before}.")
        return apr_before_liquidation(state_before, prefix, day_before, aum_before, first_deposit)

    async def compute_latest_metrics(
        self, events: Sequence[VaultEvent], as_of: Optional[datetime] = None
    ) -> LatestMetrics:
        """
        Metrics as of `as_of` (default: now) from every event up to that instant.
        TWRR is chained over the end-of-day values at each event date plus `as_of`.
        """
        as_of = as_of or datetime.now(UTC)
        if as_of.tzinfo is None:
            as_of = as_of.replace(tzinfo=UTC)
        events = [event for event in events if event.at <= as_of]
        if not events:
            return LatestMetrics(as_of=as_of)

        twrr = TwrrChain()
        for day, snapshot in iter_end_of_day_states(events):
            eod_aum = await self.valuator.compute_aum(snapshot, end_of_day(day))
            twrr.update(eod_aum, snapshot.deposited_cum_usd, snapshot.withdrawn_cum_usd)

        state = replay(events)
        aum = await self.valuator.compute_aum(state, as_of)
        twrr_percent = twrr.update(aum, state.deposited_cum_usd, state.withdrawn_cum_usd)

        pnl = compute_pnl(aum, state.deposited_cum_usd, state.withdrawn_cum_usd)
        roi_percent = compute_roi_percent(pnl, state.net_contributed_usd)

        liquidation_apr = None
        if (
            aum < USD_EPSILON
            and state.net_contributed_usd <= USD_EPSILON
            and state.first_deposit_date is not None
        ):
            liquidation_apr = await self._liquidation_apr(events, state.first_deposit_date)

        apr = clamp_apr(latest_apr(events, state, aum, roi_percent, as_of.date(), liquidation_apr))

        return LatestMetrics(
            aum_usd=finite_or_zero(aum),
            pnl_usd=finite_or_zero(pnl),
            roi_percent=finite_or_zero(roi_percent),
            apr_percent=apr,
            twrr_percent=twrr_percent,
            last_valuation_usd=state.last_valuation_usd,
            net_flow_since_valuation_usd=finite_or_zero(state.net_flow_since_valuation_usd),
            deposits_cum_usd=finite_or_zero(state.deposited_cum_usd),
            withdrawals_cum_usd=finite_or_zero(state.withdrawn_cum_usd),
            as_of=as_of,
        )

    async def get_header_metrics(self, vault: str, as_of: Optional[datetime] = None) -> VaultHeaderResponse:
        await self._require_vault(vault)
        logger.info(f"Building header metrics for vault '{vault}'.")

        with REPORT_GENERATION_DURATION_SECONDS.labels(report="header").time():
            events = await self.ledger_repo.list_events(vault)
            metrics = await self.compute_latest_metrics(events, as_of)
            vnd_rate = await usd_to_vnd(self.oracle)

        return VaultHeaderResponse(
            vault=vault,
            aum_usd=metrics.aum_usd,
            aum_vnd=metrics.aum_usd * vnd_rate,
            pnl_usd=metrics.pnl_usd,
            pnl_vnd=metrics.pnl_usd * vnd_rate,
            roi_percent=metrics.roi_percent,
            apr_percent=metrics.apr_percent,
            twrr_percent=metrics.twrr_percent,
            last_valuation_usd=metrics.last_valuation_usd,
            net_flow_since_valuation_usd=metrics.net_flow_since_valuation_usd,
            deposits_cum_usd=metrics.deposits_cum_usd,
            withdrawals_cum_usd=metrics.withdrawals_cum_usd,
            as_of=metrics.as_of,
        )

    async def get_vaults_summary(self) -> VaultsSummaryResponse:
        """Latest metrics of every vault that has at least one event, plus USD and VND totals."""
        with REPORT_GENERATION_DURATION_SECONDS.labels(report="summary").time():
            names = await self.ledger_repo.list_vault_names()
            events_by_vault = await self.ledger_repo.list_events_for_vaults(names)
            active = [name for name in names if events_by_vault.get(name)]
            logger.info(f"Summarizing {len(active)} of {len(names)} vaults.")

            all_metrics = await asyncio.gather(
                *[self.compute_latest_metrics(events_by_vault[name]) for name in active]
            )
            vnd_rate = await usd_to_vnd(self.oracle)

        rows = [
            VaultSummaryRow(
                vault=name,
                aum_usd=metrics.aum_usd,
                aum_vnd=metrics.aum_usd * vnd_rate,
                pnl_usd=metrics.pnl_usd,
                pnl_vnd=metrics.pnl_usd * vnd_rate,
                roi_percent=metrics.roi_percent,
                apr_percent=metrics.apr_percent,
                twrr_percent=metrics.twrr_percent,
            )
            for name, metrics in zip(active, all_metrics)
        ]

        totals = VaultSummaryTotals(
            aum_usd=sum(row.aum_usd for row in rows),
            aum_vnd=sum(row.aum_vnd for row in rows),
            pnl_usd=sum(row.pnl_usd for row in rows),
            pnl_vnd=sum(row.pnl_vnd for row in rows),
        )
        return VaultsSummaryResponse(rows=rows, totals=totals)
