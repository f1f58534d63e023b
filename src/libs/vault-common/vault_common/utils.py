# src/libs/vault-common/vault_common/utils.py
import functools
from typing import Any, Callable

from .monitoring import DB_OPERATION_LATENCY_SECONDS

def async_timed(repository: str, method: str) -> Callable:
    """
    Decorates an async repository method so that every call, failed ones
    included, is observed in DB_OPERATION_LATENCY_SECONDS.

    Args:
        repository: The name of the repository class (e.g., 'VaultLedgerRepository').
        method: The name of the method being timed (e.g., 'list_events').
    """
    def decorator(func: Callable) -> Callable:
        latency = DB_OPERATION_LATENCY_SECONDS.labels(repository=repository, method=method)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            with latency.time():
                return await func(*args, **kwargs)
        return wrapper
    return decorator
