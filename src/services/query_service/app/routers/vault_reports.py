# src/services/query_service/app/routers/vault_reports.py
import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from vault_common.db import get_async_db_session
from vault_analytics_engine.exceptions import VaultNotFoundError
from ..dtos.vault_report_dto import (
    AggregateSeriesResponse,
    VaultHeaderResponse,
    VaultSeriesResponse,
    VaultsSummaryResponse,
)
from ..services.vault_aggregate_service import VaultAggregateService
from ..services.vault_series_service import VaultSeriesService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["Vault Reports"]
)


def _split_names(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [name.strip() for name in value.split(",") if name.strip()]


def _server_error(report: str) -> HTTPException:
    logger.exception(f"An unexpected error occurred while building the {report}.")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected server error occurred."
    )


@router.get(
    "/vaults/summary",
    response_model=VaultsSummaryResponse,
    summary="Get Latest Metrics of Every Vault",
    description="Returns AUM, PnL, ROI, APR and TWRR as of now for every vault with ledger activity, with USD and VND totals."
)
async def get_vaults_summary(db: AsyncSession = Depends(get_async_db_session)):
    try:
        service = VaultSeriesService(db)
        return await service.get_vaults_summary()
    except Exception:
        raise _server_error("vaults summary")


@router.get(
    "/vaults/{vault}/header",
    response_model=VaultHeaderResponse,
    summary="Get Vault Header Metrics"
)
async def get_vault_header(
    vault: str,
    as_of: Optional[datetime] = Query(
        None, description="Instant to report at (UTC when no offset is given). Defaults to now."
    ),
    db: AsyncSession = Depends(get_async_db_session),
):
    try:
        service = VaultSeriesService(db)
        return await service.get_header_metrics(vault, as_of=as_of)
    except VaultNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except Exception:
        raise _server_error("vault header")


@router.get(
    "/vaults/{vault}/series",
    response_model=VaultSeriesResponse,
    summary="Get Vault Daily Series"
)
async def get_vault_series(
    vault: str,
    start: Optional[date] = Query(None, description="First day of the series. Defaults to the vault's first event."),
    end: Optional[date] = Query(None, description="Last day of the series (inclusive). Defaults to today."),
    db: AsyncSession = Depends(get_async_db_session),
):
    """
    Returns one point per calendar day with AUM, cumulative flows, PnL, ROI, APR and TWRR.
    """
    try:
        service = VaultSeriesService(db)
        return await service.get_daily_series(vault, start=start, end=end)
    except VaultNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except Exception:
        raise _server_error("vault series")


@router.get(
    "/series",
    response_model=AggregateSeriesResponse,
    summary="Get Aggregate Series Across Vaults",
    description="Sums the daily series of the selected vaults and recomputes ROI, APR and TWRR over the combined figures. APR always counts cash flows since inception, whatever the requested window."
)
async def get_aggregate_series(
    vaults: Optional[str] = Query(None, description="Comma-separated vault names. Defaults to every vault."),
    exclude: Optional[str] = Query(None, description="Comma-separated vault names to leave out."),
    start: Optional[date] = Query(None, description="First day returned."),
    end: Optional[date] = Query(None, description="Last day returned (inclusive). Defaults to today."),
    db: AsyncSession = Depends(get_async_db_session),
):
    try:
        service = VaultAggregateService(db)
        return await service.get_aggregate_series(
            vault_names=_split_names(vaults),
            exclude=_split_names(exclude),
            start=start,
            end=end,
        )
    except VaultNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except Exception:
        raise _server_error("aggregate series")
