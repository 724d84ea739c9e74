"""
Main FastAPI application bootstrap.
Configures logging and middleware and includes routers.
"""
import logging
from typing import Dict

from fastapi import FastAPI

from costengine.core.config import config
from costengine.api.costs import router as costs_router
from costengine.middleware.request_size_limiter import RequestSizeLimiterMiddleware
from costengine.middleware.trace_id import TraceIdMiddleware


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Validate configuration on startup
try:
    config.validate()
except ValueError as error:
    raise RuntimeError(f"Configuration error: {error}") from error

logger.info(
    "Cost engine configured for region=%s, max_batch_size=%d, strict_validation=%s",
    config.AWS_REGION,
    config.MAX_BATCH_SIZE,
    config.STRICT_VALIDATION,
)


app = FastAPI(
    title="AWS Cost Engine",
    description="Projected and actual cost estimation from AWS public pricing",
    version=config.PLUGIN_VERSION,
)

# Size limiting runs inside the trace id middleware
app.add_middleware(RequestSizeLimiterMiddleware)
app.add_middleware(TraceIdMiddleware)

app.include_router(costs_router)


@app.get("/health")
async def health() -> Dict[str, str]:
    """Liveness check; does not load pricing data."""
    return {"status": "ok", "region": config.AWS_REGION}
