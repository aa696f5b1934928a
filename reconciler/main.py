# reconciler/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI

from reconciler import __version__
from reconciler.core.config import get_settings
from reconciler.core.logging_config import configure_logging
from reconciler.database import engine
from reconciler.routes import audit, health, shopify


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    try:
        yield  # This is where the app runs
    finally:
        await engine.dispose()


settings = get_settings()

app = FastAPI(
    title="Inventory Reconciler",
    version=__version__,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(shopify.router)
app.include_router(audit.router)
