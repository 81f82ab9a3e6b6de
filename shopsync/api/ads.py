"""
Ads campaign, performance and budget schedule endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from datetime import timedelta
from typing import List, Optional
from sqlalchemy.orm import Session

from shopsync.config import get_settings
from shopsync.dependencies import get_ads_budget_scheduler, get_cache
from shopsync.exceptions import ReconcileError
from shopsync.models.base import get_db
from shopsync.models.ads import AdsCampaign, ShopPerformanceDaily
from shopsync.services.reconciler import ResourceKind, cache_prefix
from shopsync.utils.helpers import marketplace_today
from shopsync.utils.logger import log

settings = get_settings()

router = APIRouter(prefix="/ads", tags=["ads"])


class BudgetScheduleCreate(BaseModel):
    shop_id: int
    campaign_id: int
    ad_type: str  # manual, auto
    hour_start: int
    hour_end: int
    budget: float
    campaign_name: Optional[str] = None
    days_of_week: Optional[List[int]] = None  # 0 = Sunday
    specific_dates: Optional[List[str]] = None  # YYYY-MM-DD


@router.get("/{shop_id}/campaigns")
async def list_campaigns(
    shop_id: int,
    status: Optional[str] = Query(None, description="e.g. ongoing, paused"),
    db: Session = Depends(get_db),
    cache=Depends(get_cache),
):
    cache_key = f"{cache_prefix(ResourceKind.CAMPAIGNS, shop_id)}{status or '*'}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    query = db.query(AdsCampaign).filter(AdsCampaign.shop_id == shop_id)
    if status:
        query = query.filter(AdsCampaign.status == status)
    campaigns = query.order_by(AdsCampaign.campaign_id).all()
    result = {
        "success": True,
        "campaigns": [
            {
                "campaign_id": c.campaign_id,
                "ad_type": c.ad_type,
                "name": c.name,
                "status": c.status,
                "campaign_budget": c.campaign_budget,
                "bidding_method": c.bidding_method,
                "campaign_placement": c.campaign_placement,
                "item_count": c.item_count,
                "roas_target": c.roas_target,
                "start_time": c.start_time.isoformat() if c.start_time else None,
                "end_time": c.end_time.isoformat() if c.end_time else None,
            }
            for c in campaigns
        ],
    }
    cache.set(cache_key, result)
    return result


@router.get("/{shop_id}/performance/daily")
async def shop_daily_performance(
    shop_id: int,
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
):
    end = marketplace_today(settings.marketplace_timezone)
    start = end - timedelta(days=days - 1)
    rows = (
        db.query(ShopPerformanceDaily)
        .filter(
            ShopPerformanceDaily.shop_id == shop_id,
            ShopPerformanceDaily.performance_date >= start,
            ShopPerformanceDaily.performance_date <= end,
        )
        .order_by(ShopPerformanceDaily.performance_date)
        .all()
    )
    return {
        "success": True,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "rows": [
            {
                "date": r.performance_date.isoformat(),
                "source": r.source,
                "impression": r.impression,
                "clicks": r.clicks,
                "ctr": r.ctr,
                "expense": r.expense,
                "broad_order": r.broad_order,
                "broad_gmv": r.broad_gmv,
                "roas": r.roas,
                "acos": r.acos,
            }
            for r in rows
        ],
    }


@router.post("/budgets")
async def create_budget_schedule(payload: BudgetScheduleCreate, scheduler=Depends(get_ads_budget_scheduler)):
    try:
        schedule = scheduler.save_schedule(**payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReconcileError as e:
        log.error(f"Error saving budget schedule for shop {payload.shop_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "schedule": schedule}


@router.get("/budgets/{shop_id}")
async def list_budget_schedules(shop_id: int, scheduler=Depends(get_ads_budget_scheduler)):
    return {"success": True, "schedules": scheduler.list_schedules(shop_id)}


@router.post("/budgets/run")
async def run_budget_schedules(scheduler=Depends(get_ads_budget_scheduler)):
    """Apply the schedules for the current hour now"""
    try:
        return {"success": True, **(await scheduler.process_due())}
    except Exception as e:
        log.error(f"Error applying ads budget schedules: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/budgets/{shop_id}/{schedule_id}/run-now")
async def run_budget_schedule_now(shop_id: int, schedule_id: int, scheduler=Depends(get_ads_budget_scheduler)):
    result = await scheduler.run_now(shop_id, schedule_id)
    if result.get("error") == "Schedule not found":
        raise HTTPException(status_code=404, detail="Schedule not found")
    return result
