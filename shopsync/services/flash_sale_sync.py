"""
Flash sale snapshot sync
"""
import time
from typing import Any, Callable, Dict, List, Optional

from shopsync.config import get_settings
from shopsync.connectors.paginated_fetcher import ListPage, PaginatedFetcher
from shopsync.services.reconciler import Reconciler, ResourceKind
from shopsync.utils.helpers import from_epoch, to_int
from shopsync.utils.logger import log

settings = get_settings()

FLASH_SALE_LIST_PATH = "/api/v2/shop_flash_sale/get_shop_flash_sale_list"

# type: 1 upcoming, 2 ongoing, 3 expired; type=0 in the request means all
TYPE_UPCOMING = 1
TYPE_ONGOING = 2
TYPE_EXPIRED = 3
ACTIVE_TYPES = (TYPE_UPCOMING, TYPE_ONGOING)

FLASH_SALE_LIST = ListPage(
    path=FLASH_SALE_LIST_PATH,
    list_key="flash_sale_list",
    limit_param="limit",
    more_key=None,
    next_offset_key=None,
    total_key="total_count",
    extra_params={"type": 0},
)


def keep_flash_sale(entry: Dict[str, Any], now_ts: int, retention_days: int) -> bool:
    """Upcoming and ongoing sales, plus expired ones that ended recently"""
    sale_type = entry.get("type")
    if sale_type in ACTIVE_TYPES:
        return True
    if sale_type == TYPE_EXPIRED:
        return to_int(entry.get("end_time")) >= now_ts - retention_days * 86400
    return False


def flash_sale_record(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "flash_sale_id": entry.get("flash_sale_id"),
        "timeslot_id": entry.get("timeslot_id"),
        "status": entry.get("status"),
        "type": entry.get("type"),
        "start_time": from_epoch(entry.get("start_time")),
        "end_time": from_epoch(entry.get("end_time")),
        "enabled_item_count": to_int(entry.get("enabled_item_count")),
        "item_count": to_int(entry.get("item_count")),
        "remindme_count": to_int(entry.get("remindme_count")),
        "click_count": to_int(entry.get("click_count")),
        "raw_response": entry,
    }


class FlashSaleSync:
    """Replaces a shop's flash_sales rows with what Shopee currently lists"""

    resource_kind = "flash_sales"

    def __init__(
        self,
        fetcher_factory: Callable[[], PaginatedFetcher],
        reconciler: Reconciler,
        retention_days: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.fetcher_factory = fetcher_factory
        self.reconciler = reconciler
        self.retention_days = retention_days if retention_days is not None else settings.flash_sale_expired_retention_days
        self.clock = clock

    async def run(self, shop_id: int, progress: Callable[[str, int], None]) -> Dict[str, Any]:
        progress("fetching_flash_sales", 20)
        fetcher = self.fetcher_factory()
        # A short list would delete live sales from the snapshot, so page errors abort
        entries = await fetcher.fetch_list(shop_id, FLASH_SALE_LIST, raise_on_error=True)

        now_ts = int(self.clock())
        records: List[Dict[str, Any]] = [
            flash_sale_record(e) for e in entries if keep_flash_sale(e, now_ts, self.retention_days)
        ]
        log.info(f"Shop {shop_id}: keeping {len(records)} of {len(entries)} flash sales")

        progress("saving_flash_sales", 70)
        count = self.reconciler.reconcile(shop_id, ResourceKind.FLASH_SALES, records)
        return {"flash_sales_synced": count, "flash_sales_fetched": len(entries)}
