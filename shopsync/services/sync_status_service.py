"""
Reads and writes the sync_status table polled by the dashboard.

Rows are keyed by (shop_id, resource_kind). Status tracking failures are
logged and never abort the sync they describe.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shopsync.models.base import SessionLocal
from shopsync.models.sync_status import SyncStatus
from shopsync.utils.logger import log


def never_synced(shop_id: int, resource_kind: str) -> Dict[str, Any]:
    """Status shape for a (shop, kind) that has never run"""
    return {
        "shop_id": shop_id,
        "resource_kind": resource_kind,
        "is_syncing": False,
        "last_sync_at": None,
        "last_sync_error": None,
        "progress": None,
        "last_result": None,
    }


def _serialize(status: SyncStatus) -> Dict[str, Any]:
    return {
        "shop_id": status.shop_id,
        "resource_kind": status.resource_kind,
        "is_syncing": bool(status.is_syncing),
        "last_sync_at": status.last_sync_at.isoformat() if status.last_sync_at else None,
        "last_sync_error": status.last_sync_error,
        "progress": status.progress,
        "last_result": status.last_result,
    }


class SyncStatusService:
    def __init__(self, session_factory: Callable = SessionLocal):
        self.session_factory = session_factory

    def get(self, shop_id: int, resource_kind: str) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            status = self._find(db, shop_id, resource_kind)
            return _serialize(status) if status else never_synced(shop_id, resource_kind)
        finally:
            db.close()

    def start(self, shop_id: int, resource_kind: str, triggered_by: Optional[str] = None):
        self._update(
            shop_id, resource_kind,
            is_syncing=True,
            progress={"step": "starting", "percent": 0},
            triggered_by=triggered_by,
        )

    def progress(self, shop_id: int, resource_kind: str, step: str, percent: int):
        self._update(shop_id, resource_kind, progress={"step": step, "percent": percent})

    def complete(self, shop_id: int, resource_kind: str, result: Optional[Dict[str, Any]] = None):
        self._update(
            shop_id, resource_kind,
            is_syncing=False,
            last_sync_at=datetime.utcnow(),
            last_sync_error=None,
            progress={"step": "completed", "percent": 100},
            last_result=result,
        )

    def fail(self, shop_id: int, resource_kind: str, error: str, failed_step: Optional[Dict[str, Any]] = None):
        progress = {"step": "failed", "percent": (failed_step or {}).get("percent", 0)}
        if failed_step:
            progress["failed_step"] = failed_step.get("step")
        self._update(
            shop_id, resource_kind,
            is_syncing=False,
            last_sync_error=error,
            progress=progress,
        )

    def _update(self, shop_id: int, resource_kind: str, **values):
        db = self.session_factory()
        try:
            status = self._find(db, shop_id, resource_kind)
            if status is None:
                status = SyncStatus(shop_id=shop_id, resource_kind=resource_kind)
                db.add(status)
            for key, value in values.items():
                setattr(status, key, value)
            status.updated_at = datetime.utcnow()
            try:
                db.commit()
            except IntegrityError:
                # A concurrent run created the row first
                db.rollback()
                status = self._find(db, shop_id, resource_kind)
                for key, value in values.items():
                    setattr(status, key, value)
                db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to update sync status for shop {shop_id} {resource_kind}: {e}")
        finally:
            db.close()

    @staticmethod
    def _find(db, shop_id, resource_kind) -> Optional[SyncStatus]:
        return db.query(SyncStatus).filter(
            SyncStatus.shop_id == shop_id,
            SyncStatus.resource_kind == resource_kind,
        ).first()
