"""
Scheduler for background Shopee syncs

Uses APScheduler to run per-shop syncs and the two write schedulers.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from zoneinfo import ZoneInfo

from shopsync.config import get_settings
from shopsync.dependencies import (
    get_ads_budget_scheduler,
    get_credential_store,
    get_flash_sale_scheduler,
    get_orchestrator,
)
from shopsync.utils.logger import log

settings = get_settings()
MARKETPLACE_TZ = ZoneInfo(settings.marketplace_timezone)

scheduler = AsyncIOScheduler()


async def sync_all_shops(resource_kind: str):
    """Run one resource sync for every connected shop, one shop at a time"""
    shops = get_credential_store().list_shops()
    if not shops:
        return
    orchestrator = get_orchestrator()
    log.info(f"Scheduled {resource_kind} sync for {len(shops)} shop(s)")
    for shop in shops:
        if not shop["has_token"]:
            continue
        outcome = await orchestrator.run(shop["shop_id"], resource_kind, user_id="scheduler")
        if not outcome.success:
            log.warning(f"Scheduled {resource_kind} sync failed for shop {shop['shop_id']}: {outcome.error}")


async def run_flash_sale_jobs():
    try:
        result = await get_flash_sale_scheduler().process_pending()
        if result["processed"]:
            log.info(f"Flash sale jobs: {result['succeeded']} succeeded, {result['failed']} failed")
    except Exception as e:
        log.error(f"Flash sale job run failed: {str(e)}")


async def run_ads_budget_schedules():
    try:
        await get_ads_budget_scheduler().process_due()
    except Exception as e:
        log.error(f"Ads budget run failed: {str(e)}")


def setup_scheduler():
    """
    Configure jobs.

    - Ads:               every ads_sync_interval_minutes
    - Flash sales:       every flash_sale_sync_interval_minutes
    - Products:          daily at product_sync_hour (marketplace time)
    - Flash sale jobs:   every flash_sale_scheduler_interval_minutes
    - Ads budgets:       every ads_budget_scheduler_interval_minutes
    """
    scheduler.add_job(
        sync_all_shops,
        trigger=IntervalTrigger(minutes=settings.ads_sync_interval_minutes),
        args=["ads"],
        id='ads_sync',
        name='Shopee Ads Sync',
        replace_existing=True,
        max_instances=1
    )
    scheduler.add_job(
        sync_all_shops,
        trigger=IntervalTrigger(minutes=settings.flash_sale_sync_interval_minutes),
        args=["flash_sales"],
        id='flash_sale_sync',
        name='Shopee Flash Sale Sync',
        replace_existing=True,
        max_instances=1
    )
    scheduler.add_job(
        sync_all_shops,
        trigger=CronTrigger(hour=settings.product_sync_hour, minute=0, timezone=MARKETPLACE_TZ),
        args=["products"],
        id='product_sync',
        name='Shopee Product Sync',
        replace_existing=True,
        max_instances=1
    )
    scheduler.add_job(
        run_flash_sale_jobs,
        trigger=IntervalTrigger(minutes=settings.flash_sale_scheduler_interval_minutes),
        id='flash_sale_jobs',
        name='Flash Sale Auto Registration',
        replace_existing=True,
        max_instances=1
    )
    scheduler.add_job(
        run_ads_budget_schedules,
        trigger=IntervalTrigger(minutes=settings.ads_budget_scheduler_interval_minutes),
        id='ads_budget_schedules',
        name='Ads Budget Schedules',
        replace_existing=True,
        max_instances=1
    )


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        log.info("Scheduler stopped")
