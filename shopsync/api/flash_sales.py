"""
Flash sale listing and auto-registration job endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session

from shopsync.dependencies import get_flash_sale_scheduler
from shopsync.models.base import get_db
from shopsync.models.flash_sale import FlashSale
from shopsync.utils.logger import log

router = APIRouter(prefix="/flash-sales", tags=["flash-sales"])


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class FlashSaleJobCreate(BaseModel):
    shop_id: int
    timeslot_id: int
    slot_start_time: datetime  # UTC
    slot_end_time: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    user_id: Optional[str] = None


@router.post("/jobs")
async def create_job(payload: FlashSaleJobCreate, scheduler=Depends(get_flash_sale_scheduler)):
    job = scheduler.schedule_job(
        shop_id=payload.shop_id,
        timeslot_id=payload.timeslot_id,
        slot_start_time=_naive_utc(payload.slot_start_time),
        slot_end_time=_naive_utc(payload.slot_end_time),
        scheduled_at=_naive_utc(payload.scheduled_at),
        user_id=payload.user_id,
    )
    return {"success": True, "job": job}


@router.get("/jobs/{shop_id}")
async def list_jobs(shop_id: int, limit: int = Query(50, le=200), scheduler=Depends(get_flash_sale_scheduler)):
    return {"success": True, "jobs": scheduler.list_jobs(shop_id, limit=limit)}


@router.post("/jobs/run")
async def run_jobs(scheduler=Depends(get_flash_sale_scheduler)):
    """Process due jobs now instead of waiting for the scheduler"""
    try:
        return {"success": True, **(await scheduler.process_pending())}
    except Exception as e:
        log.error(f"Error processing flash sale jobs: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{shop_id}")
async def list_flash_sales(
    shop_id: int,
    sale_type: Optional[int] = Query(None, alias="type", description="1 upcoming, 2 ongoing, 3 expired"),
    db: Session = Depends(get_db),
):
    query = db.query(FlashSale).filter(FlashSale.shop_id == shop_id)
    if sale_type is not None:
        query = query.filter(FlashSale.type == sale_type)
    sales = query.order_by(FlashSale.start_time.desc()).all()
    return {
        "success": True,
        "flash_sales": [
            {
                "flash_sale_id": s.flash_sale_id,
                "timeslot_id": s.timeslot_id,
                "status": s.status,
                "type": s.type,
                "start_time": s.start_time.isoformat() if s.start_time else None,
                "end_time": s.end_time.isoformat() if s.end_time else None,
                "enabled_item_count": s.enabled_item_count,
                "item_count": s.item_count,
                "click_count": s.click_count,
                "remindme_count": s.remindme_count,
            }
            for s in sales
        ],
    }
