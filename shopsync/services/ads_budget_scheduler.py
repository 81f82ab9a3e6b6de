"""
Applies scheduled campaign budgets for the current marketplace hour.

A schedule matches when hour_start <= hour < hour_end and, if set, today's
date is in specific_dates, or else today's weekday (0 = Sunday) is in
days_of_week. Every attempt is written to ads_budget_logs.
"""
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError

from shopsync.config import get_settings
from shopsync.exceptions import ReconcileError, ShopSyncError
from shopsync.models.base import SessionLocal
from shopsync.models.ads import AdsBudgetLog, ScheduledAdsBudget
from shopsync.utils.logger import log

settings = get_settings()

EDIT_MANUAL_ADS_PATH = "/api/v2/ads/edit_manual_product_ads"
EDIT_AUTO_ADS_PATH = "/api/v2/ads/edit_auto_product_ads"

AD_TYPES = ("manual", "auto")

ERROR_MESSAGES = {
    "error_auth": "Authentication failed, the access token is expired or invalid",
    "error_param": "Invalid parameters",
    "error_permission": "No permission to edit this campaign",
    "error_server": "Shopee server error",
    "error_not_found": "Campaign not found",
    "ads.error_budget_too_low": "Budget is below the minimum allowed",
    "ads.error_budget_too_high": "Budget exceeds the allowed maximum",
    "ads.error_campaign_not_found": "Ads campaign not found",
    "ads.error_campaign_status": "Campaign status does not allow budget changes",
}


def describe_error(error: str, message: Optional[str] = None) -> str:
    return ERROR_MESSAGES.get(error) or f"{message or error} (code: {error})"


def schedule_applies(schedule: ScheduledAdsBudget, local_now: datetime) -> bool:
    if not (schedule.hour_start <= local_now.hour < schedule.hour_end):
        return False
    if schedule.specific_dates:
        return local_now.strftime("%Y-%m-%d") in schedule.specific_dates
    if schedule.days_of_week and len(schedule.days_of_week) < 7:
        # isoweekday: Monday=1 .. Sunday=7; schedules use Sunday=0
        return local_now.isoweekday() % 7 in schedule.days_of_week
    return True


def serialize_schedule(s: ScheduledAdsBudget) -> Dict[str, Any]:
    return {
        "id": s.id,
        "shop_id": s.shop_id,
        "campaign_id": s.campaign_id,
        "campaign_name": s.campaign_name,
        "ad_type": s.ad_type,
        "hour_start": s.hour_start,
        "hour_end": s.hour_end,
        "budget": s.budget,
        "days_of_week": s.days_of_week,
        "specific_dates": s.specific_dates,
        "is_active": s.is_active,
    }


class AdsBudgetScheduler:
    def __init__(self, client, session_factory: Callable = SessionLocal, tz_name: Optional[str] = None):
        self.client = client
        self.session_factory = session_factory
        self.tz = ZoneInfo(tz_name or settings.marketplace_timezone)

    def save_schedule(
        self,
        shop_id: int,
        campaign_id: int,
        ad_type: str,
        hour_start: int,
        hour_end: int,
        budget: float,
        campaign_name: Optional[str] = None,
        days_of_week: Optional[List[int]] = None,
        specific_dates: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Create a schedule, or replace the one for the same campaign and hours"""
        if ad_type not in AD_TYPES:
            raise ValueError(f"ad_type must be one of {AD_TYPES}")
        if not (0 <= hour_start < hour_end <= 24):
            raise ValueError("hours must satisfy 0 <= hour_start < hour_end <= 24")
        if budget is None or budget <= 0:
            raise ValueError("budget must be positive")

        db = self.session_factory()
        try:
            schedule = db.query(ScheduledAdsBudget).filter(
                ScheduledAdsBudget.shop_id == shop_id,
                ScheduledAdsBudget.campaign_id == campaign_id,
                ScheduledAdsBudget.hour_start == hour_start,
                ScheduledAdsBudget.hour_end == hour_end,
            ).first()
            if schedule is None:
                schedule = ScheduledAdsBudget(
                    shop_id=shop_id, campaign_id=campaign_id, hour_start=hour_start, hour_end=hour_end
                )
                db.add(schedule)
            schedule.campaign_name = campaign_name
            schedule.ad_type = ad_type
            schedule.budget = budget
            schedule.days_of_week = days_of_week or None
            schedule.specific_dates = specific_dates or None
            schedule.is_active = True
            db.commit()
            db.refresh(schedule)
            return serialize_schedule(schedule)
        except SQLAlchemyError as e:
            db.rollback()
            raise ReconcileError(f"Failed to save budget schedule: {e}") from e
        finally:
            db.close()

    def list_schedules(self, shop_id: int) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            rows = (
                db.query(ScheduledAdsBudget)
                .filter(ScheduledAdsBudget.shop_id == shop_id)
                .order_by(ScheduledAdsBudget.campaign_id, ScheduledAdsBudget.hour_start)
                .all()
            )
            return [serialize_schedule(r) for r in rows]
        finally:
            db.close()

    async def process_due(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Apply every schedule matching the current marketplace hour"""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local_now = now.astimezone(self.tz)

        db = self.session_factory()
        try:
            candidates = db.query(ScheduledAdsBudget).filter(
                ScheduledAdsBudget.is_active.is_(True),
                ScheduledAdsBudget.hour_start <= local_now.hour,
                ScheduledAdsBudget.hour_end > local_now.hour,
            ).order_by(ScheduledAdsBudget.id).all()
            schedules = [s for s in candidates if schedule_applies(s, local_now)]
            for s in schedules:
                db.expunge(s)
        finally:
            db.close()

        log.info(f"Ads budget scheduler at {local_now:%Y-%m-%d %H:%M}: {len(schedules)} applicable schedule(s)")
        results = []
        for schedule in schedules:
            results.append(await self.apply(schedule))
        return {
            "processed": len(results),
            "hour": local_now.hour,
            "date": local_now.strftime("%Y-%m-%d"),
            "results": results,
        }

    async def run_now(self, shop_id: int, schedule_id: int) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            schedule = db.query(ScheduledAdsBudget).filter(
                ScheduledAdsBudget.id == schedule_id,
                ScheduledAdsBudget.shop_id == shop_id,
            ).first()
            if schedule is not None:
                db.expunge(schedule)
        finally:
            db.close()
        if schedule is None:
            return {"success": False, "error": "Schedule not found", "schedule_id": schedule_id}
        return await self.apply(schedule)

    async def apply(self, schedule: ScheduledAdsBudget) -> Dict[str, Any]:
        error = await self._edit_budget(schedule)
        self._log(schedule, error)
        if error:
            log.warning(f"Budget change for campaign {schedule.campaign_id} failed: {error}")
        else:
            log.info(f"Campaign {schedule.campaign_id} budget set to {schedule.budget}")
        return {
            "schedule_id": schedule.id,
            "campaign_id": schedule.campaign_id,
            "budget": schedule.budget,
            "success": error is None,
            "error": error,
        }

    async def _edit_budget(self, schedule: ScheduledAdsBudget) -> Optional[str]:
        path = EDIT_MANUAL_ADS_PATH if schedule.ad_type == "manual" else EDIT_AUTO_ADS_PATH
        body = {
            "reference_id": f"scheduler-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}",
            "campaign_id": schedule.campaign_id,
            "edit_action": "change_budget",
            "budget": schedule.budget,
        }
        try:
            response = await self.client.call(schedule.shop_id, path, method="POST", body=body)
        except ShopSyncError as e:
            return str(e)
        except Exception as e:
            return f"System error: {e}"

        error = response.get("error")
        if error and error != "-":
            return describe_error(error, response.get("message"))
        if not response.get("response"):
            return "Shopee returned no response data"
        return None

    def _log(self, schedule: ScheduledAdsBudget, error: Optional[str]):
        db = self.session_factory()
        try:
            db.add(AdsBudgetLog(
                shop_id=schedule.shop_id,
                campaign_id=schedule.campaign_id,
                campaign_name=schedule.campaign_name,
                schedule_id=schedule.id,
                new_budget=schedule.budget,
                status="failed" if error else "success",
                error_message=error,
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to write budget log for schedule {schedule.id}: {e}")
        finally:
            db.close()
