# src/services/query_service/app/main.py
import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from vault_common.logging_utils import setup_logging, correlation_id_var, generate_correlation_id
from vault_common.health import create_health_router
from .routers import vault_reports

SERVICE_PREFIX = "VLT"
setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Vault Analytics Service",
    description="Service for reporting AUM, PnL, APR and TWRR of vaults.",
    version="0.1.0"
)

# --- Prometheus Metrics Instrumentation ---
Instrumentator().instrument(app).expose(app)
logger.info("Prometheus metrics exposed at /metrics")

@app.middleware("http")
async def add_correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get('X-Correlation-ID')
    if not correlation_id:
        correlation_id = generate_correlation_id(SERVICE_PREFIX)
    token = correlation_id_var.set(correlation_id)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token)
    response.headers['X-Correlation-ID'] = correlation_id
    return response

# Global Exception Handler
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    correlation_id = correlation_id_var.get()
    logger.critical(
        f"Unhandled exception for request {request.method} {request.url}",
        exc_info=exc,
        extra={"correlation_id": correlation_id}
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please contact support.",
            "correlation_id": correlation_id
        },
    )

# This service depends only on the database.
app.include_router(create_health_router('db'))

app.include_router(vault_reports.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
