"""
Shopee seller-ops sync service
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from shopsync import __version__
from shopsync.api import ads, flash_sales, health, shops, sync
from shopsync.config import get_settings
from shopsync.utils.logger import log

settings = get_settings()


def _startup_database():
    from shopsync.dependencies import get_credential_store
    from shopsync.models.base import init_db

    init_db()
    shops_connected = get_credential_store().list_shops()
    log.info(f"Database ready, {len(shops_connected)} shop(s) connected")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the store, then start background jobs if enabled"""
    log.info(f"Starting {settings.app_name} v{__version__} ({settings.environment})")

    try:
        _startup_database()
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    if settings.scheduler_enabled:
        from shopsync.scheduler import start_scheduler
        try:
            start_scheduler()
        except Exception as e:
            log.error(f"Scheduler startup error: {str(e)}")
    else:
        log.info("Scheduler disabled; syncs run only when triggered through the API")

    yield

    if settings.scheduler_enabled:
        from shopsync.scheduler import stop_scheduler
        stop_scheduler()
    log.info("Shutting down")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Mirrors a Shopee shop's flash sales, products and ads data into a local
    store, and runs scheduled flash sale registration and ads budget changes.
    """,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (health, shops, sync, flash_sales, ads):
    app.include_router(module.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "shopsync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
