"""
Shopee Ads sync: campaign settings, campaign performance, shop totals.

Campaign and performance rows are upserted, so days outside the synced
window keep their history. Only ongoing campaigns get performance pulled.
"""
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from shopsync.config import get_settings
from shopsync.connectors.paginated_fetcher import DetailBatch, ListPage, PaginatedFetcher
from shopsync.services.aggregator import Granularity, PerformanceAggregator, metrics_from_row
from shopsync.services.reconciler import Reconciler, ResourceKind
from shopsync.utils.helpers import (
    date_window,
    from_epoch,
    marketplace_today,
    parse_shopee_date,
    to_float,
    to_int,
    to_shopee_date,
)
from shopsync.utils.logger import log

settings = get_settings()

CAMPAIGN_ID_LIST_PATH = "/api/v2/ads/get_product_level_campaign_id_list"
CAMPAIGN_SETTING_PATH = "/api/v2/ads/get_product_level_campaign_setting_info"
CAMPAIGN_DAILY_PATH = "/api/v2/ads/get_product_campaign_daily_performance"
CAMPAIGN_HOURLY_PATH = "/api/v2/ads/get_product_campaign_hourly_performance"

ONGOING = "ongoing"

CAMPAIGN_ID_LIST = ListPage(
    path=CAMPAIGN_ID_LIST_PATH,
    list_key="campaign_list",
    id_key="campaign_id",
    limit_param="limit",
    page_size=settings.campaign_list_limit,
    extra_params={"ad_type": "all"},
)

# info_type_list 1 = common info, 3 = auto bidding info
CAMPAIGN_SETTINGS = DetailBatch(
    path=CAMPAIGN_SETTING_PATH,
    id_param="campaign_id_list",
    list_key="campaign_list",
    batch_size=settings.campaign_detail_batch_size,
    extra_params={"info_type_list": "1,3"},
)

# Ads progress descriptors polled by the dashboard
STEP_CAMPAIGNS = ("syncing_campaigns", 20)
STEP_DAILY = ("syncing_daily_performance", 50)
STEP_HOURLY = ("syncing_hourly_performance", 80)


def campaign_record(setting: Dict[str, Any], ad_type: Optional[str] = None) -> Dict[str, Any]:
    common = setting.get("common_info") or {}
    duration = common.get("campaign_duration") or {}
    auto_bidding = setting.get("auto_bidding_info") or {}
    return {
        "campaign_id": setting.get("campaign_id"),
        "ad_type": ad_type or setting.get("ad_type"),
        "name": common.get("ad_name"),
        "status": common.get("campaign_status"),
        "campaign_placement": common.get("campaign_placement"),
        "bidding_method": common.get("bidding_method"),
        "campaign_budget": to_float(common.get("campaign_budget"), None),
        "start_time": from_epoch(duration.get("start_time")),
        "end_time": from_epoch(duration.get("end_time")),
        "item_count": len(common.get("item_id_list") or []),
        "roas_target": to_float(auto_bidding.get("roas_target"), None),
    }


def campaign_performance_rows(
    campaign_list: List[Dict[str, Any]],
    hourly_date: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Flatten campaign_list[].metrics_list into performance rows.

    Daily entries carry their own DD-MM-YYYY date; hourly entries are for
    hourly_date and carry an hour.
    """
    rows = []
    for campaign in campaign_list:
        campaign_id = campaign.get("campaign_id")
        metrics = campaign.get("metrics_list") or campaign.get("performance_list") or []
        for entry in metrics:
            if hourly_date is None:
                performance_date = parse_shopee_date(entry.get("date"))
                if performance_date is None:
                    continue
                row = {"campaign_id": campaign_id, "performance_date": performance_date}
            else:
                if entry.get("hour") is None:
                    continue
                row = {"campaign_id": campaign_id, "performance_date": hourly_date, "hour": to_int(entry.get("hour"))}
            row.update(metrics_from_row(entry))
            rows.append(row)
    return rows


class AdsSync:
    """Campaigns, then daily and hourly performance, then shop totals"""

    resource_kind = "ads"

    def __init__(
        self,
        fetcher_factory: Callable[[], PaginatedFetcher],
        reconciler: Reconciler,
        aggregator: PerformanceAggregator,
        timezone: Optional[str] = None,
        window_days: Optional[int] = None,
    ):
        self.fetcher_factory = fetcher_factory
        self.reconciler = reconciler
        self.aggregator = aggregator
        self.timezone = timezone or settings.marketplace_timezone
        self.window_days = window_days or settings.performance_window_days

    async def run(
        self,
        shop_id: int,
        progress: Callable[[str, int], None],
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        fetcher = self.fetcher_factory()
        today = today or marketplace_today(self.timezone)
        start_date, end_date = date_window(today, self.window_days)

        progress(*STEP_CAMPAIGNS)
        campaigns = await self.sync_campaigns(shop_id, fetcher)
        ongoing = [c["campaign_id"] for c in campaigns if c.get("status") == ONGOING]
        log.info(f"Shop {shop_id}: {len(campaigns)} campaigns, {len(ongoing)} ongoing")

        progress(*STEP_DAILY)
        daily_count = await self.sync_daily_performance(shop_id, fetcher, ongoing, start_date, end_date)
        daily_summary = await self.aggregator.aggregate_shop_performance(
            shop_id, Granularity.DAILY, start_date=start_date, end_date=end_date
        )

        progress(*STEP_HOURLY)
        hourly_count = await self.sync_hourly_performance(shop_id, fetcher, ongoing, today)
        hourly_summary = await self.aggregator.aggregate_shop_performance(
            shop_id, Granularity.HOURLY, end_date=today
        )

        today_rows = [r for r in daily_summary.rows if r.get("performance_date") == today]
        return {
            "campaigns_synced": len(campaigns),
            "ongoing_campaigns": len(ongoing),
            "daily_performance_synced": daily_count,
            "hourly_performance_synced": hourly_count,
            "shop_daily_source": daily_summary.source,
            "shop_hourly_source": hourly_summary.source,
            "today": {
                "impression": sum(to_int(r.get("impression")) for r in today_rows),
                "clicks": sum(to_int(r.get("clicks")) for r in today_rows),
                "orders": sum(to_int(r.get("broad_order")) for r in today_rows),
                "gmv": sum(to_float(r.get("broad_gmv")) for r in today_rows),
                "expense": sum(to_float(r.get("expense")) for r in today_rows),
            },
            "skipped_calls": len(fetcher.failures),
        }

    async def sync_campaigns(self, shop_id: int, fetcher: PaginatedFetcher) -> List[Dict[str, Any]]:
        """Upsert every campaign's settings; a failing id listing aborts the sync"""
        entries = await fetcher.fetch_list(shop_id, CAMPAIGN_ID_LIST, raise_on_error=True)
        ad_types = {e.get("campaign_id"): e.get("ad_type") for e in entries if e.get("campaign_id") is not None}
        if not ad_types:
            return []

        settings_list = await fetcher.fetch_details(shop_id, CAMPAIGN_SETTINGS, list(ad_types))
        records = [campaign_record(s, ad_types.get(s.get("campaign_id"))) for s in settings_list]
        self.reconciler.reconcile(shop_id, ResourceKind.CAMPAIGNS, records)
        return records

    async def sync_daily_performance(self, shop_id, fetcher, campaign_ids, start_date, end_date) -> int:
        if not campaign_ids:
            return 0
        batch = DetailBatch(
            path=CAMPAIGN_DAILY_PATH,
            id_param="campaign_id_list",
            list_key="campaign_list",
            batch_size=settings.campaign_detail_batch_size,
            extra_params={"start_date": to_shopee_date(start_date), "end_date": to_shopee_date(end_date)},
        )
        campaign_list = await fetcher.fetch_details(shop_id, batch, campaign_ids)
        rows = campaign_performance_rows(campaign_list)
        return self.reconciler.reconcile(shop_id, ResourceKind.CAMPAIGN_DAILY, rows)

    async def sync_hourly_performance(self, shop_id, fetcher, campaign_ids, performance_date) -> int:
        if not campaign_ids:
            return 0
        batch = DetailBatch(
            path=CAMPAIGN_HOURLY_PATH,
            id_param="campaign_id_list",
            list_key="campaign_list",
            batch_size=settings.campaign_detail_batch_size,
            extra_params={"performance_date": to_shopee_date(performance_date)},
        )
        campaign_list = await fetcher.fetch_details(shop_id, batch, campaign_ids)
        rows = campaign_performance_rows(campaign_list, hourly_date=performance_date)
        return self.reconciler.reconcile(shop_id, ResourceKind.CAMPAIGN_HOURLY, rows)
