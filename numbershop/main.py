# numbershop/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from numbershop.api.routers import admin, cart, checkout, health, orders, provisioning, sms_config, usage, webhooks
from numbershop.data.database import Base, init_db
from numbershop.domain.errors import ServiceError
from numbershop.utils import settings
from numbershop.utils.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"Database ready, tables: {sorted(Base.metadata.tables)}")
    if settings.TELEPHONY_PROVIDER != "mock" and not settings.DIDWW_WEBHOOK_SECRET:
        logger.warning("DIDWW_WEBHOOK_SECRET is not set, telephony webhooks will be rejected")
    yield


async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Numbershop",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(ServiceError, service_error_handler)

    app.include_router(health.router)
    app.include_router(cart.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(provisioning.router)
    app.include_router(admin.router)
    app.include_router(usage.router)
    app.include_router(sms_config.router)
    app.include_router(webhooks.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
