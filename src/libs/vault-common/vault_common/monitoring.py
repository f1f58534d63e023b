# src/libs/vault-common/vault_common/monitoring.py
import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# DB metrics (used by vault_common.utils.async_timed)
# --------------------------------------------------------------------------------------
DB_OPERATION_LATENCY_SECONDS = Histogram(
    "db_operation_latency_seconds",
    "Latency of database operations in seconds",
    labelnames=("repository", "method"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

# --------------------------------------------------------------------------------------
# Pricing metrics
# --------------------------------------------------------------------------------------
PRICE_LOOKUPS_TOTAL = Counter(
    "price_lookups_total",
    "Number of asset USD rate lookups made while valuing vaults, by outcome.",
    labelnames=("outcome",),
)

def observe_price_lookup(outcome: str, count: int = 1) -> None:
    """outcome is one of 'cache_hit', 'fetched', 'fallback', 'missing'."""
    PRICE_LOOKUPS_TOTAL.labels(outcome).inc(count)

# --------------------------------------------------------------------------------------
# Report metrics
# --------------------------------------------------------------------------------------
REPORT_GENERATION_DURATION_SECONDS = Histogram(
    "vault_report_generation_duration_seconds",
    "Time taken to generate a vault report.",
    labelnames=("report",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
