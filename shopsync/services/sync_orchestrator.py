"""
Runs one sync job for a (shop, resource kind) and reports it in sync_status.

    idle -> syncing -> completed | failed

A failed run stays failed until something triggers a new one; there is no
automatic retry. is_syncing is advisory, so overlapping runs for the same
shop are allowed and rely on the reconcile step being idempotent.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional
import time

from shopsync.connectors.paginated_fetcher import PaginatedFetcher
from shopsync.connectors.shopee_client import ShopeeClient
from shopsync.models.base import SessionLocal
from shopsync.services.ads_sync import AdsSync
from shopsync.services.aggregator import PerformanceAggregator
from shopsync.services.flash_sale_sync import FlashSaleSync
from shopsync.services.product_sync import ProductSync
from shopsync.services.reconciler import Reconciler
from shopsync.services.sync_status_service import SyncStatusService
from shopsync.utils.logger import sync_logger

RESOURCE_KINDS = ("flash_sales", "products", "ads")


@dataclass
class SyncOutcome:
    """Result of one orchestrated sync"""
    shop_id: int
    resource_kind: str
    success: bool = False
    result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    failed_step: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "shop_id": self.shop_id,
            "resource_kind": self.resource_kind,
            "duration_seconds": round(self.duration_seconds, 2),
        }
        if self.success:
            data["result"] = self.result
        else:
            data["error"] = self.error
            data["failed_step"] = self.failed_step
        return data


class SyncOrchestrator:
    """Sequences fetch, reconcile and aggregate for a sync job"""

    def __init__(
        self,
        client: ShopeeClient,
        reconciler: Reconciler,
        session_factory: Callable = SessionLocal,
        status_service: Optional[SyncStatusService] = None,
        fetcher_factory: Optional[Callable[[], PaginatedFetcher]] = None,
        handlers: Optional[Dict[str, Any]] = None,
    ):
        self.client = client
        self.reconciler = reconciler
        self.status = status_service or SyncStatusService(session_factory)
        self.fetcher_factory = fetcher_factory or (lambda: PaginatedFetcher(client))
        if handlers is None:
            aggregator = PerformanceAggregator(client, reconciler, session_factory)
            handlers = {
                "flash_sales": FlashSaleSync(self.fetcher_factory, reconciler),
                "products": ProductSync(self.fetcher_factory, reconciler),
                "ads": AdsSync(self.fetcher_factory, reconciler, aggregator),
            }
        self.handlers = handlers

    def get_status(self, shop_id: int, resource_kind: str) -> Dict[str, Any]:
        return self.status.get(shop_id, resource_kind)

    async def run(self, shop_id: int, resource_kind: str, user_id: Optional[str] = None) -> SyncOutcome:
        """
        Run one sync to completion or first unretried failure.

        Never raises for sync failures; the outcome and the sync_status row
        carry the error message instead.
        """
        handler = self.handlers.get(resource_kind)
        if handler is None:
            raise ValueError(f"Unknown resource kind: {resource_kind}")

        outcome = SyncOutcome(shop_id=shop_id, resource_kind=resource_kind, started_at=datetime.utcnow())
        start = time.time()
        current = {"step": "starting", "percent": 0}

        def progress(step: str, percent: int):
            current["step"], current["percent"] = step, percent
            self.status.progress(shop_id, resource_kind, step, percent)

        run_log = sync_logger(shop_id, resource_kind)
        run_log.info(f"Starting sync (triggered by {user_id or 'api'})")
        self.status.start(shop_id, resource_kind, triggered_by=user_id)

        try:
            outcome.result = await handler.run(shop_id, progress)
            outcome.success = True
        except Exception as e:
            outcome.error = str(e) or type(e).__name__
            outcome.failed_step = current["step"]
            run_log.error(f"Sync failed at {current['step']}: {outcome.error}")
        finally:
            outcome.completed_at = datetime.utcnow()
            outcome.duration_seconds = time.time() - start

        if outcome.success:
            self.status.complete(shop_id, resource_kind, outcome.result)
            run_log.info(f"Sync completed in {outcome.duration_seconds:.1f}s")
        else:
            self.status.fail(shop_id, resource_kind, outcome.error, failed_step=dict(current))
        return outcome
