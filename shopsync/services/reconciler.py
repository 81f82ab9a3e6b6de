"""
Writes freshly fetched Shopee records into the local store.

Two patterns, chosen per resource kind:

- snapshot: Shopee only reports current state (flash sales, products,
  models), so the shop's rows are deleted and the fresh set inserted, both
  inside one transaction.
- upsert: campaigns and performance rows accumulate; a single
  INSERT .. ON CONFLICT DO UPDATE keyed on the natural key overwrites
  matching rows and leaves the rest untouched.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from shopsync.exceptions import ReconcileError
from shopsync.models.base import SessionLocal
from shopsync.models.flash_sale import FlashSale
from shopsync.models.product import Product, ProductModel
from shopsync.models.ads import (
    AdsCampaign,
    AdsPerformanceDaily,
    AdsPerformanceHourly,
    ShopPerformanceDaily,
    ShopPerformanceHourly,
)
from shopsync.utils.cache import ResponseCache
from shopsync.utils.helpers import chunk_list
from shopsync.utils.logger import log


class ResourceKind(str, Enum):
    FLASH_SALES = "flash_sales"
    PRODUCTS = "products"
    PRODUCT_MODELS = "product_models"
    CAMPAIGNS = "ads_campaigns"
    CAMPAIGN_DAILY = "ads_performance_daily"
    CAMPAIGN_HOURLY = "ads_performance_hourly"
    SHOP_DAILY = "shop_performance_daily"
    SHOP_HOURLY = "shop_performance_hourly"


class WriteMode(str, Enum):
    SNAPSHOT = "snapshot"
    UPSERT = "upsert"


@dataclass(frozen=True)
class ReconcilePlan:
    model: Any
    mode: WriteMode
    conflict_keys: Tuple[str, ...]


RECONCILE_PLANS: Dict[ResourceKind, ReconcilePlan] = {
    ResourceKind.FLASH_SALES: ReconcilePlan(FlashSale, WriteMode.SNAPSHOT, ("shop_id", "flash_sale_id")),
    ResourceKind.PRODUCTS: ReconcilePlan(Product, WriteMode.SNAPSHOT, ("shop_id", "item_id")),
    ResourceKind.PRODUCT_MODELS: ReconcilePlan(ProductModel, WriteMode.SNAPSHOT, ("shop_id", "item_id", "model_id")),
    ResourceKind.CAMPAIGNS: ReconcilePlan(AdsCampaign, WriteMode.UPSERT, ("shop_id", "campaign_id")),
    ResourceKind.CAMPAIGN_DAILY: ReconcilePlan(
        AdsPerformanceDaily, WriteMode.UPSERT, ("shop_id", "campaign_id", "performance_date")
    ),
    ResourceKind.CAMPAIGN_HOURLY: ReconcilePlan(
        AdsPerformanceHourly, WriteMode.UPSERT, ("shop_id", "campaign_id", "performance_date", "hour")
    ),
    ResourceKind.SHOP_DAILY: ReconcilePlan(ShopPerformanceDaily, WriteMode.UPSERT, ("shop_id", "performance_date")),
    ResourceKind.SHOP_HOURLY: ReconcilePlan(
        ShopPerformanceHourly, WriteMode.UPSERT, ("shop_id", "performance_date", "hour")
    ),
}

# Columns the store owns; never taken from fetched records
_MANAGED_COLUMNS = {"id", "created_at"}

# Keeps multi-row VALUES under the SQLite bound-parameter limit
UPSERT_CHUNK_SIZE = 500


def cache_prefix(kind: ResourceKind, shop_id: int) -> str:
    return f"{kind.value}:{shop_id}:"


def _dialect_insert(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    raise ReconcileError(f"Upsert is not supported on {dialect_name}")


class Reconciler:
    """Applies a fresh record set for one shop and resource kind"""

    def __init__(self, session_factory: Callable = SessionLocal, cache: Optional[ResponseCache] = None):
        self.session_factory = session_factory
        self.cache = cache

    def reconcile(
        self,
        shop_id: int,
        kind: ResourceKind,
        fresh_records: Sequence[Mapping[str, Any]],
        scope: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """
        Write fresh_records for shop_id.

        Args:
            scope: extra column filters narrowing a snapshot delete (e.g. item_id)

        Returns:
            Number of records written

        Raises:
            ReconcileError: the store rejected the write; nothing was committed
        """
        kind = ResourceKind(kind)
        plan = RECONCILE_PLANS[kind]
        rows = self._prepare(shop_id, plan, fresh_records, scope)

        db = self.session_factory()
        try:
            if plan.mode == WriteMode.SNAPSHOT:
                written = self._replace(db, shop_id, plan, rows, scope)
            else:
                written = self._upsert(db, plan, rows)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Reconcile {kind.value} for shop {shop_id} failed: {e}")
            raise ReconcileError(f"Failed to save {kind.value}: {e}") from e
        finally:
            db.close()

        if self.cache is not None:
            self.cache.invalidate(cache_prefix(kind, shop_id))
        log.info(f"Reconciled {written} {kind.value} for shop {shop_id} ({plan.mode.value})")
        return written

    def _prepare(self, shop_id, plan, fresh_records, scope) -> List[Dict[str, Any]]:
        columns = {c.name for c in plan.model.__table__.columns} - _MANAGED_COLUMNS
        now = datetime.utcnow()
        rows = []
        for record in fresh_records:
            row = {k: v for k, v in record.items() if k in columns}
            row["shop_id"] = shop_id
            for key, value in (scope or {}).items():
                row[key] = value
            if "synced_at" in columns:
                row.setdefault("synced_at", now)
            if "updated_at" in columns:
                row["updated_at"] = now
            missing = [k for k in plan.conflict_keys if row.get(k) is None]
            if missing:
                log.warning(f"Dropping {plan.model.__tablename__} record without {missing}")
                continue
            rows.append(row)

        # Last record wins for duplicate keys within one batch
        by_key: Dict[tuple, Dict[str, Any]] = {}
        for row in rows:
            by_key[tuple(row[k] for k in plan.conflict_keys)] = row
        return list(by_key.values())

    def _replace(self, db, shop_id, plan, rows, scope) -> int:
        table = plan.model.__table__
        stmt = delete(table).where(table.c.shop_id == shop_id)
        for key, value in (scope or {}).items():
            stmt = stmt.where(table.c[key] == value)
        db.execute(stmt)
        if rows:
            db.execute(table.insert(), self._uniform(rows))
        return len(rows)

    def _upsert(self, db, plan, rows) -> int:
        if not rows:
            return 0
        table = plan.model.__table__
        insert = _dialect_insert(db.get_bind().dialect.name)

        # A row only overwrites the columns it carries, so rows are grouped by key set
        groups: Dict[Tuple[str, ...], List[Dict[str, Any]]] = {}
        for row in rows:
            groups.setdefault(tuple(sorted(row)), []).append(row)

        for columns, group in groups.items():
            update_columns = [name for name in columns if name not in plan.conflict_keys]
            for chunk in chunk_list(group, UPSERT_CHUNK_SIZE):
                stmt = insert(table).values(chunk)
                if update_columns:
                    stmt = stmt.on_conflict_do_update(
                        index_elements=list(plan.conflict_keys),
                        set_={name: stmt.excluded[name] for name in update_columns},
                    )
                else:
                    stmt = stmt.on_conflict_do_nothing(index_elements=list(plan.conflict_keys))
                db.execute(stmt)
        return len(rows)

    @staticmethod
    def _uniform(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Give every row the same keys so one multi-row statement fits all"""
        keys = set()
        for row in rows:
            keys.update(row)
        return [{k: row.get(k) for k in keys} for row in rows]
