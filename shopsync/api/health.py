"""
Liveness and operational status
"""
from fastapi import APIRouter, Depends
from datetime import datetime
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopsync import __version__
from shopsync.config import get_settings
from shopsync.dependencies import get_cache, get_client, get_credential_store
from shopsync.models.base import get_db
from shopsync.utils.logger import log

settings = get_settings()

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """healthy if the store answers, degraded otherwise"""
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        log.error(f"Health check database error: {e}")
        database = "unavailable"
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
    }


@router.get("/status")
async def get_status(
    client=Depends(get_client),
    store=Depends(get_credential_store),
    cache=Depends(get_cache),
):
    """Client call counters, connected shops and scheduled jobs"""
    from shopsync.scheduler import scheduler

    shops = store.list_shops()
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "shopee": client.get_status(),
        "shops_connected": len(shops),
        "shops_without_token": [s["shop_id"] for s in shops if not s["has_token"]],
        "cache": cache.stats(),
        "scheduler": {
            "enabled": settings.scheduler_enabled,
            "running": scheduler.running,
            "jobs": [
                {"id": job.id, "next_run": job.next_run_time.isoformat() if job.next_run_time else None}
                for job in scheduler.get_jobs()
            ] if scheduler.running else [],
        },
        "timestamp": datetime.utcnow().isoformat(),
    }
