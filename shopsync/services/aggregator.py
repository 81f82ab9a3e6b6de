"""
Shop-level ads performance rollups.

Shopee's shop-wide endpoints (get_all_cpc_ads_daily/hourly_performance)
sometimes come back empty while campaign-level data exists. When that
happens the totals are rebuilt from the already reconciled campaign rows.
One invocation uses one path only, so each stored row holds either the
upstream totals or the campaign sums, marked in its `source` column.
"""
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from shopsync.config import get_settings
from shopsync.exceptions import CredentialError
from shopsync.models.base import SessionLocal
from shopsync.models.ads import AdsPerformanceDaily, AdsPerformanceHourly
from shopsync.services.reconciler import Reconciler, ResourceKind
from shopsync.utils.helpers import (
    date_window,
    marketplace_today,
    parse_shopee_date,
    safe_divide,
    to_float,
    to_int,
    to_shopee_date,
)
from shopsync.utils.logger import log

settings = get_settings()

SHOP_DAILY_PATH = "/api/v2/ads/get_all_cpc_ads_daily_performance"
SHOP_HOURLY_PATH = "/api/v2/ads/get_all_cpc_ads_hourly_performance"

COUNT_METRICS = ("impression", "clicks", "direct_order", "broad_order", "direct_item_sold", "broad_item_sold")
AMOUNT_METRICS = ("expense", "direct_gmv", "broad_gmv")
SUMMED_METRICS = COUNT_METRICS + AMOUNT_METRICS


class Granularity(str, Enum):
    DAILY = "daily"
    HOURLY = "hourly"


class SummarySource(str, Enum):
    UPSTREAM = "upstream"
    CAMPAIGN_ROLLUP = "campaign_rollup"
    NONE = "none"


@dataclass
class PerformanceSummary:
    """Totals across the rows an aggregation wrote"""
    granularity: str
    source: str = SummarySource.NONE.value
    records_written: int = 0
    impression: int = 0
    clicks: int = 0
    orders: int = 0  # broad_order
    gmv: float = 0.0  # broad_gmv
    expense: float = 0.0
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self, include_rows: bool = False) -> Dict[str, Any]:
        data = asdict(self)
        if not include_rows:
            data.pop("rows")
        return data


def derive_ratios(metrics: Dict[str, Any]) -> Dict[str, float]:
    """ctr and acos are percentages, roas a multiple; 0 on empty denominators"""
    impression = to_float(metrics.get("impression"))
    clicks = to_float(metrics.get("clicks"))
    expense = to_float(metrics.get("expense"))
    broad_gmv = to_float(metrics.get("broad_gmv"))
    return {
        "ctr": safe_divide(clicks * 100, impression),
        "roas": safe_divide(broad_gmv, expense),
        "acos": safe_divide(expense * 100, broad_gmv),
    }


def metrics_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize one Shopee metrics entry and attach derived ratios"""
    metrics: Dict[str, Any] = {name: to_int(row.get(name)) for name in COUNT_METRICS}
    metrics.update({name: to_float(row.get(name)) for name in AMOUNT_METRICS})
    metrics.update(derive_ratios(metrics))
    return metrics


def _metrics_list(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    body = response.get("response")
    if isinstance(body, list):
        return body
    body = body or {}
    return body.get("metrics_list") or body.get("performance_list") or []


class PerformanceAggregator:
    """Builds shop_performance_daily / shop_performance_hourly rows"""

    def __init__(
        self,
        client,
        reconciler: Reconciler,
        session_factory: Callable = SessionLocal,
        timezone: Optional[str] = None,
        window_days: Optional[int] = None,
    ):
        self.client = client
        self.reconciler = reconciler
        self.session_factory = session_factory
        self.timezone = timezone or settings.marketplace_timezone
        self.window_days = window_days or settings.performance_window_days

    async def aggregate_shop_performance(
        self,
        shop_id: int,
        granularity: Granularity,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PerformanceSummary:
        """
        Refresh shop-level totals for a window.

        Daily covers start_date..end_date (default: the last window_days days
        in the marketplace timezone). Hourly covers the single day end_date
        (default: today).
        """
        granularity = Granularity(granularity)
        today = marketplace_today(self.timezone)
        end_date = end_date or today
        if granularity == Granularity.HOURLY:
            start_date = end_date
        elif start_date is None:
            start_date, end_date = date_window(end_date, self.window_days)

        rows = await self._upstream_rows(shop_id, granularity, start_date, end_date)
        source = SummarySource.UPSTREAM

        if not rows:
            log.info(f"Shop {shop_id}: no upstream {granularity.value} totals, rolling up campaign rows")
            try:
                rows = self._campaign_rollup(shop_id, granularity, start_date, end_date)
            except SQLAlchemyError as e:
                log.error(f"Shop {shop_id}: campaign rollup query failed: {e}")
                return PerformanceSummary(granularity=granularity.value)
            source = SummarySource.CAMPAIGN_ROLLUP

        if not rows:
            return PerformanceSummary(granularity=granularity.value)

        for row in rows:
            row["source"] = source.value
        kind = ResourceKind.SHOP_DAILY if granularity == Granularity.DAILY else ResourceKind.SHOP_HOURLY
        written = self.reconciler.reconcile(shop_id, kind, rows)
        return self._summarize(granularity, source, rows, written)

    async def _upstream_rows(self, shop_id, granularity, start_date, end_date) -> List[Dict[str, Any]]:
        if granularity == Granularity.DAILY:
            path = SHOP_DAILY_PATH
            params = {"start_date": to_shopee_date(start_date), "end_date": to_shopee_date(end_date)}
        else:
            path = SHOP_HOURLY_PATH
            params = {"performance_date": to_shopee_date(end_date)}

        try:
            response = await self.client.call(shop_id, path, params=params)
        except CredentialError:
            raise
        except Exception as e:
            log.warning(f"Shop {shop_id} {path} failed: {type(e).__name__}: {e}")
            return []
        if response.get("error"):
            log.warning(f"Shop {shop_id} {path} returned {response.get('error')}: {response.get('message', '')}")
            return []

        rows = []
        for entry in _metrics_list(response):
            if granularity == Granularity.DAILY:
                performance_date = parse_shopee_date(entry.get("date"))
                if performance_date is None:
                    continue
                row = {"performance_date": performance_date}
            else:
                hour = entry.get("hour")
                if hour is None:
                    continue
                row = {"performance_date": end_date, "hour": to_int(hour)}
            row.update(metrics_from_row(entry))
            rows.append(row)
        return rows

    def _campaign_rollup(self, shop_id, granularity, start_date, end_date) -> List[Dict[str, Any]]:
        model = AdsPerformanceDaily if granularity == Granularity.DAILY else AdsPerformanceHourly
        db = self.session_factory()
        try:
            records = (
                db.query(model)
                .filter(
                    model.shop_id == shop_id,
                    model.performance_date >= start_date,
                    model.performance_date <= end_date,
                )
                .all()
            )
            groups: "OrderedDict[tuple, Dict[str, Any]]" = OrderedDict()
            for record in sorted(records, key=lambda r: (r.performance_date, getattr(r, "hour", 0))):
                if granularity == Granularity.DAILY:
                    key = (record.performance_date,)
                    base = {"performance_date": record.performance_date}
                else:
                    key = (record.performance_date, record.hour)
                    base = {"performance_date": record.performance_date, "hour": record.hour}
                totals = groups.setdefault(key, {**base, **{m: 0 for m in SUMMED_METRICS}})
                for metric in SUMMED_METRICS:
                    totals[metric] += getattr(record, metric) or 0
        finally:
            db.close()

        rows = list(groups.values())
        for row in rows:
            row.update(derive_ratios(row))
        return rows

    @staticmethod
    def _summarize(granularity, source, rows, written) -> PerformanceSummary:
        return PerformanceSummary(
            granularity=granularity.value,
            source=source.value,
            records_written=written,
            impression=sum(to_int(r.get("impression")) for r in rows),
            clicks=sum(to_int(r.get("clicks")) for r in rows),
            orders=sum(to_int(r.get("broad_order")) for r in rows),
            gmv=sum(to_float(r.get("broad_gmv")) for r in rows),
            expense=sum(to_float(r.get("expense")) for r in rows),
            rows=rows,
        )
