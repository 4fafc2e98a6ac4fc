# storefront/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront import models  # noqa: F401  registers every table on Base.metadata
from storefront.core.config import get_settings
from storefront.core.exceptions import BaseServiceError
from storefront.core.logging_config import configure_logging
from storefront.database import engine
from storefront.routes import cart, health, inventory, orders

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Starting %s (%s)", settings.STORE_NAME, settings.ENVIRONMENT)
    try:
        yield  # This is where the app runs
    finally:
        await engine.dispose()


app = FastAPI(
    title="Storefront Orders",
    lifespan=lifespan
)


@app.exception_handler(BaseServiceError)
async def service_error_handler(request: Request, exc: BaseServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.kind, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(orders.admin_router)
app.include_router(inventory.router)
app.include_router(health.router)  # Health check should be accessible without auth
