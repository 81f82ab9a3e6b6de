"""
Reconciler tests.

Guards against:
1. Duplicate performance rows when the same window is synced twice
2. Stale snapshot rows surviving a sync that no longer reports them
3. Cached reads outliving the write that changed them
4. A failed snapshot insert losing the rows it was replacing
"""
from datetime import date

import pytest

from shopsync.exceptions import ReconcileError
from shopsync.models.ads import AdsCampaign, AdsPerformanceDaily
from shopsync.models.flash_sale import FlashSale
from shopsync.models.product import ProductModel
from shopsync.services.reconciler import Reconciler, ResourceKind, cache_prefix

SHOP = 1001
OTHER_SHOP = 1002


def _count(session_factory, model, **filters):
    db = session_factory()
    try:
        return db.query(model).filter_by(**filters).count()
    finally:
        db.close()


def _daily(campaign_id, day, clicks):
    return {"campaign_id": campaign_id, "performance_date": day, "impression": clicks * 10, "clicks": clicks}


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------

def test_upsert_is_idempotent(reconciler, session_factory):
    rows = [_daily(1, date(2026, 3, 1), 5), _daily(1, date(2026, 3, 2), 7)]

    assert reconciler.reconcile(SHOP, ResourceKind.CAMPAIGN_DAILY, rows) == 2
    assert reconciler.reconcile(SHOP, ResourceKind.CAMPAIGN_DAILY, rows) == 2

    assert _count(session_factory, AdsPerformanceDaily, shop_id=SHOP) == 2


def test_upsert_overwrites_matches_and_keeps_history(reconciler, session_factory):
    reconciler.reconcile(SHOP, ResourceKind.CAMPAIGN_DAILY, [
        _daily(1, date(2026, 3, 1), 5),
        _daily(1, date(2026, 3, 2), 7),
    ])
    reconciler.reconcile(SHOP, ResourceKind.CAMPAIGN_DAILY, [_daily(1, date(2026, 3, 2), 9)])

    db = session_factory()
    try:
        rows = db.query(AdsPerformanceDaily).order_by(AdsPerformanceDaily.performance_date).all()
        assert [(r.performance_date, r.clicks) for r in rows] == [
            (date(2026, 3, 1), 5),
            (date(2026, 3, 2), 9),
        ]
    finally:
        db.close()


def test_duplicate_keys_in_one_batch_collapse(reconciler, session_factory):
    written = reconciler.reconcile(SHOP, ResourceKind.CAMPAIGNS, [
        {"campaign_id": 7, "name": "old", "status": "paused"},
        {"campaign_id": 7, "name": "new", "status": "ongoing"},
    ])

    assert written == 1
    db = session_factory()
    try:
        campaign = db.query(AdsCampaign).one()
        assert campaign.name == "new"
        assert campaign.status == "ongoing"
    finally:
        db.close()


def test_partial_records_only_overwrite_their_own_columns(reconciler, session_factory):
    reconciler.reconcile(SHOP, ResourceKind.CAMPAIGNS, [
        {"campaign_id": 1, "name": "A", "status": "ongoing", "campaign_budget": 100.0},
    ])

    reconciler.reconcile(SHOP, ResourceKind.CAMPAIGNS, [
        {"campaign_id": 1, "status": "paused"},
        {"campaign_id": 2, "name": "B"},
    ])

    db = session_factory()
    try:
        first = db.query(AdsCampaign).filter_by(shop_id=SHOP, campaign_id=1).one()
        assert (first.name, first.status, first.campaign_budget) == ("A", "paused", 100.0)
        second = db.query(AdsCampaign).filter_by(shop_id=SHOP, campaign_id=2).one()
        assert second.name == "B"
    finally:
        db.close()


def test_records_missing_a_key_are_dropped(reconciler, session_factory):
    written = reconciler.reconcile(SHOP, ResourceKind.CAMPAIGNS, [{"name": "no id"}, {"campaign_id": 3}])
    assert written == 1


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

def test_snapshot_replaces_the_shops_rows(reconciler, session_factory):
    reconciler.reconcile(SHOP, ResourceKind.FLASH_SALES, [{"flash_sale_id": 1}, {"flash_sale_id": 2}])
    reconciler.reconcile(OTHER_SHOP, ResourceKind.FLASH_SALES, [{"flash_sale_id": 1}])

    reconciler.reconcile(SHOP, ResourceKind.FLASH_SALES, [{"flash_sale_id": 3}])

    db = session_factory()
    try:
        ids = [s.flash_sale_id for s in db.query(FlashSale).filter_by(shop_id=SHOP).all()]
        assert ids == [3]
    finally:
        db.close()
    assert _count(session_factory, FlashSale, shop_id=OTHER_SHOP) == 1


def test_empty_snapshot_clears_the_shop(reconciler, session_factory):
    reconciler.reconcile(SHOP, ResourceKind.FLASH_SALES, [{"flash_sale_id": 1}])

    assert reconciler.reconcile(SHOP, ResourceKind.FLASH_SALES, []) == 0
    assert _count(session_factory, FlashSale, shop_id=SHOP) == 0


def test_scoped_snapshot_only_touches_the_scope(reconciler, session_factory):
    reconciler.reconcile(SHOP, ResourceKind.PRODUCT_MODELS, [{"model_id": 1}, {"model_id": 2}], scope={"item_id": 10})
    reconciler.reconcile(SHOP, ResourceKind.PRODUCT_MODELS, [{"model_id": 5}], scope={"item_id": 20})

    reconciler.reconcile(SHOP, ResourceKind.PRODUCT_MODELS, [{"model_id": 3}], scope={"item_id": 10})

    assert _count(session_factory, ProductModel, shop_id=SHOP, item_id=10) == 1
    assert _count(session_factory, ProductModel, shop_id=SHOP, item_id=20) == 1


# ---------------------------------------------------------------------------
# Cache and errors
# ---------------------------------------------------------------------------

def test_write_invalidates_cached_reads(reconciler, cache):
    key = f"{cache_prefix(ResourceKind.CAMPAIGNS, SHOP)}list"
    cache.set(key, ["stale"])
    cache.set("shops:*", ["untouched"])

    reconciler.reconcile(SHOP, ResourceKind.CAMPAIGNS, [{"campaign_id": 1}])

    assert cache.get(key) is None
    assert cache.get("shops:*") == ["untouched"]


def test_store_failure_raises_reconcile_error(engine, session_factory):
    reconciler = Reconciler(session_factory)
    AdsCampaign.__table__.drop(engine)

    with pytest.raises(ReconcileError):
        reconciler.reconcile(SHOP, ResourceKind.CAMPAIGNS, [{"campaign_id": 1}])


def test_failed_snapshot_keeps_previous_rows(reconciler, session_factory):
    reconciler.reconcile(SHOP, ResourceKind.FLASH_SALES, [{"flash_sale_id": 1}, {"flash_sale_id": 2}])

    with pytest.raises(ReconcileError):
        reconciler.reconcile(SHOP, ResourceKind.FLASH_SALES, [{"flash_sale_id": 3, "item_count": object()}])

    db = session_factory()
    try:
        ids = sorted(s.flash_sale_id for s in db.query(FlashSale).filter_by(shop_id=SHOP).all())
        assert ids == [1, 2]
    finally:
        db.close()


def test_write_leaves_other_shops_cache_alone(reconciler, cache):
    own = f"{cache_prefix(ResourceKind.CAMPAIGNS, 1)}*"
    similar = f"{cache_prefix(ResourceKind.CAMPAIGNS, 10)}*"
    cache.set(own, ["stale"])
    cache.set(similar, ["fresh"])

    reconciler.reconcile(1, ResourceKind.CAMPAIGNS, [{"campaign_id": 1}])

    assert cache.get(own) is None
    assert cache.get(similar) == ["fresh"]
