# src/libs/vault-common/vault_common/logging_utils.py
import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional, Union
from pythonjsonlogger import jsonlogger

from .config import ENVIRONMENT, LOG_LEVEL, SERVICE_NAME

# Holds the correlation ID of the request being served.
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="<not-set>")

class CorrelationIdFilter(logging.Filter):
    """
    A logging filter that injects the current correlation ID and service identity
    into the log record.
    """
    def filter(self, record):
        record.correlation_id = correlation_id_var.get()
        record.service = SERVICE_NAME
        record.environment = ENVIRONMENT
        return True

# Third-party loggers capped at WARNING.
QUIET_LOGGERS = ("sqlalchemy.engine", "asyncio", "uvicorn.access")

def setup_logging(level: Optional[Union[int, str]] = None):
    """
    Configures the root logger for correlation-ID-aware, structured JSON
    logging at `level` (default: LOG_LEVEL). Every logger in the process,
    library loggers included, inherits it.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level or LOG_LEVEL)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s %(service)s %(environment)s %(correlation_id)s",
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger"
        }
    ))
    handler.addFilter(CorrelationIdFilter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

def generate_correlation_id(prefix: str) -> str:
    """
    Generates a new correlation ID with a service-specific prefix.
    Args:
        prefix: A short code for the service (e.g., 'VLT').
    Returns:
        A formatted correlation ID string.
    """
    return f"{prefix}:{uuid.uuid4()}"
