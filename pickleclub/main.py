"""
Club API: member profiles, memberships, pricing and push-token registration.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from pickleclub.config import settings
from pickleclub.db.pool import db_pool
from pickleclub.infrastructure.observability.logging import get_logger, setup_logging
from pickleclub.routes import health, memberships, notifications, pricing, profile
from pickleclub.services.redis_client import redis_cache

setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)

# Opened in this order, closed in reverse
RESOURCES = (("database_pool", db_pool), ("redis", redis_cache))


async def _close_all(opened: list[tuple[str, object]]) -> list[str]:
    errors = []
    for name, resource in reversed(opened):
        try:
            await resource.close()
        except Exception as e:
            logger.error("Error closing resource", resource=name, error=str(e))
            errors.append(f"{name}: {e}")
    return errors


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Club API starting", environment=settings.environment, debug=settings.debug)

    opened: list[tuple[str, object]] = []
    for name, resource in RESOURCES:
        try:
            await resource.initialize()
        except Exception as e:
            logger.error(
                "Failed to initialize resource",
                resource=name,
                error=str(e),
                completed=[n for n, _ in opened],
            )
            await _close_all(opened)
            raise
        opened.append((name, resource))

    logger.info("Club API ready", resources=[n for n, _ in opened])

    yield

    logger.info("Club API shutting down")
    errors = await _close_all(opened)
    if errors:
        logger.warning("Shutdown finished with errors", errors=errors)


app = FastAPI(
    title="The Pickle Co. Club API",
    description="Member profiles, memberships, pricing and booking reminders",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(profile.router)
app.include_router(memberships.router)
app.include_router(pricing.router)
app.include_router(notifications.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.time()
    response = await call_next(request)
    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.time() - started) * 1000, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
