# src/libs/vault-common/vault_common/health.py
import logging
import asyncio
from typing import Awaitable, Callable, Dict, Tuple

from fastapi import APIRouter, status, HTTPException
from sqlalchemy import text

from .config import SERVICE_NAME
from .db import AsyncSessionLocal

logger = logging.getLogger(__name__)

DependencyCheck = Callable[[], Awaitable[bool]]


async def check_db_health() -> bool:
    """True when the ledger database answers a trivial query."""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Health Check: Database connection failed: {e}", exc_info=False)
        return False


def create_health_router(*dependencies: str) -> APIRouter:
    """
    Creates the liveness and readiness router.

    Args:
        *dependencies: Names of the dependencies the readiness probe checks.
                       Only 'db' is known; unknown names are ignored.
    """
    router = APIRouter(tags=["Health"])

    known: Dict[str, Tuple[str, DependencyCheck]] = {
        'db': ('database', check_db_health),
    }
    checks = [known[dep] for dep in dependencies if dep in known]

    @router.get("/health/live", status_code=status.HTTP_200_OK)
    async def liveness_probe():
        return {"status": "alive", "service": SERVICE_NAME}

    @router.get("/health/ready", status_code=status.HTTP_200_OK)
    async def readiness_probe():
        results = await asyncio.gather(*[check() for _, check in checks])
        dep_status = {label: "ok" if ok else "unavailable" for (label, _), ok in zip(checks, results)}

        if all(results):
            return {"status": "ready", "service": SERVICE_NAME, "dependencies": dep_status}

        logger.warning(f"Readiness check failed: {dep_status}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "service": SERVICE_NAME, "dependencies": dep_status},
        )

    return router
