"""
Registers flash sales for timeslots the operator scheduled in advance.

For each due job: refuse slots that start too soon or already have an
active sale, copy the items of the shop's latest upcoming/ongoing sale,
create the new sale and add the items to it.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from shopsync.config import get_settings
from shopsync.models.base import SessionLocal
from shopsync.models.flash_sale import FlashSale, FlashSaleAutoJob
from shopsync.services.flash_sale_sync import ACTIVE_TYPES, FLASH_SALE_LIST_PATH
from shopsync.services.item_normalizer import collect_template_items, normalize
from shopsync.utils.logger import log

settings = get_settings()

FLASH_SALE_ITEMS_PATH = "/api/v2/shop_flash_sale/get_shop_flash_sale_items"
CREATE_FLASH_SALE_PATH = "/api/v2/shop_flash_sale/create_shop_flash_sale"
ADD_FLASH_SALE_ITEMS_PATH = "/api/v2/shop_flash_sale/add_shop_flash_sale_items"

JOB_SCHEDULED = "scheduled"
JOB_PROCESSING = "processing"
JOB_SUCCESS = "success"
JOB_ERROR = "error"


class JobRejected(Exception):
    """A job that cannot go ahead; the message is stored on the job"""


def serialize_job(job: FlashSaleAutoJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "shop_id": job.shop_id,
        "timeslot_id": job.timeslot_id,
        "slot_start_time": job.slot_start_time.isoformat() if job.slot_start_time else None,
        "slot_end_time": job.slot_end_time.isoformat() if job.slot_end_time else None,
        "scheduled_at": job.scheduled_at.isoformat() if job.scheduled_at else None,
        "status": job.status,
        "flash_sale_id": job.flash_sale_id,
        "items_added": job.items_added,
        "error_message": job.error_message,
        "processed_at": job.processed_at.isoformat() if job.processed_at else None,
    }


class FlashSaleAutoScheduler:
    def __init__(
        self,
        client,
        session_factory: Callable = SessionLocal,
        min_lead_minutes: Optional[int] = None,
        batch_limit: Optional[int] = None,
        job_delay_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.client = client
        self.session_factory = session_factory
        self.min_lead = timedelta(minutes=settings.flash_sale_min_lead_minutes if min_lead_minutes is None else min_lead_minutes)
        self.batch_limit = batch_limit or settings.flash_sale_job_batch_limit
        self.job_delay = (settings.flash_sale_job_delay_ms if job_delay_ms is None else job_delay_ms) / 1000.0
        self.sleep = sleep
        self.clock = clock

    def schedule_job(
        self,
        shop_id: int,
        timeslot_id: int,
        slot_start_time: datetime,
        slot_end_time: Optional[datetime] = None,
        scheduled_at: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Queue a timeslot; runs as soon as the scheduler sees it unless scheduled_at is later"""
        db = self.session_factory()
        try:
            job = FlashSaleAutoJob(
                shop_id=shop_id,
                user_id=user_id,
                timeslot_id=timeslot_id,
                slot_start_time=slot_start_time,
                slot_end_time=slot_end_time,
                scheduled_at=scheduled_at or self.clock(),
                status=JOB_SCHEDULED,
            )
            db.add(job)
            db.commit()
            db.refresh(job)
            log.info(f"Scheduled flash sale job {job.id} for shop {shop_id} timeslot {timeslot_id}")
            return serialize_job(job)
        finally:
            db.close()

    def list_jobs(self, shop_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            jobs = (
                db.query(FlashSaleAutoJob)
                .filter(FlashSaleAutoJob.shop_id == shop_id)
                .order_by(FlashSaleAutoJob.scheduled_at.desc())
                .limit(limit)
                .all()
            )
            return [serialize_job(j) for j in jobs]
        finally:
            db.close()

    async def process_pending(self) -> Dict[str, Any]:
        """Process due jobs, oldest first, up to batch_limit per run"""
        db = self.session_factory()
        try:
            job_ids = [
                row.id for row in
                db.query(FlashSaleAutoJob.id)
                .filter(FlashSaleAutoJob.status == JOB_SCHEDULED, FlashSaleAutoJob.scheduled_at <= self.clock())
                .order_by(FlashSaleAutoJob.scheduled_at.asc())
                .limit(self.batch_limit)
                .all()
            ]
        finally:
            db.close()

        if not job_ids:
            return {"processed": 0, "succeeded": 0, "failed": 0, "results": []}

        log.info(f"Processing {len(job_ids)} flash sale job(s)")
        results = []
        for index, job_id in enumerate(job_ids):
            if index and self.job_delay > 0:
                await self.sleep(self.job_delay)
            results.append(await self.process_job(job_id))

        processed = [r for r in results if not r.get("skipped")]
        succeeded = sum(1 for r in processed if r["success"])
        return {
            "processed": len(processed),
            "succeeded": succeeded,
            "failed": len(processed) - succeeded,
            "results": results,
        }

    async def process_job(self, job_id: int) -> Dict[str, Any]:
        job = self._load(job_id)
        if job is None:
            return {"job_id": job_id, "success": False, "skipped": True, "message": "job not found"}
        if job.status != JOB_SCHEDULED:
            return {"job_id": job_id, "success": False, "skipped": True, "message": f"job is {job.status}"}

        if self.clock() + self.min_lead >= job.slot_start_time:
            message = f"Timeslot starts in under {int(self.min_lead.total_seconds() // 60)} minutes"
            self._finish(job_id, JOB_ERROR, error_message=message)
            return {"job_id": job_id, "success": False, "message": message}

        if not self._claim(job_id):
            return {"job_id": job_id, "success": False, "skipped": True, "message": "already claimed"}

        try:
            existing = await self._existing_sale(job.shop_id, job.timeslot_id)
            if existing:
                raise JobRejected(f"Timeslot already has flash sale #{existing}")

            items = normalize(await self._template_items(job.shop_id))
            if not items:
                raise JobRejected("No eligible template items to copy")

            create = await self.client.call(
                job.shop_id, CREATE_FLASH_SALE_PATH, method="POST", body={"timeslot_id": job.timeslot_id}
            )
            flash_sale_id = (create.get("response") or {}).get("flash_sale_id")
            if create.get("error") or not flash_sale_id:
                raise JobRejected(create.get("message") or create.get("error") or "Flash sale was not created")

            add = await self.client.call(
                job.shop_id, ADD_FLASH_SALE_ITEMS_PATH, method="POST",
                body={"flash_sale_id": flash_sale_id, "items": items},
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            log.error(f"Flash sale job {job_id} for shop {job.shop_id} failed: {message}")
            self._finish(job_id, JOB_ERROR, error_message=message)
            return {"job_id": job_id, "success": False, "message": message}

        # The sale exists even if adding items was refused
        add_error = add.get("message") or add.get("error")
        self._finish(
            job_id, JOB_SUCCESS,
            flash_sale_id=flash_sale_id,
            items_added=0 if add_error else len(items),
            error_message=f"Adding items failed: {add_error}" if add_error else None,
        )
        message = f"Created flash sale #{flash_sale_id}" + (
            f" (adding items failed: {add_error})" if add_error else f" with {len(items)} items"
        )
        log.info(f"Flash sale job {job_id}: {message}")
        return {"job_id": job_id, "success": True, "flash_sale_id": flash_sale_id, "message": message}

    async def _existing_sale(self, shop_id: int, timeslot_id: int) -> Optional[int]:
        response = await self.client.call(
            shop_id, FLASH_SALE_LIST_PATH, params={"type": 0, "offset": 0, "limit": 100}
        )
        for sale in (response.get("response") or {}).get("flash_sale_list") or []:
            if sale.get("timeslot_id") == timeslot_id and sale.get("type") in ACTIVE_TYPES:
                return sale.get("flash_sale_id")
        return None

    async def _template_items(self, shop_id: int) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            template = (
                db.query(FlashSale)
                .filter(FlashSale.shop_id == shop_id, FlashSale.type.in_(ACTIVE_TYPES))
                .order_by(FlashSale.start_time.desc())
                .first()
            )
            template_id = template.flash_sale_id if template else None
        finally:
            db.close()

        if template_id is None:
            log.info(f"Shop {shop_id}: no upcoming or ongoing flash sale to copy items from")
            return []

        response = await self.client.call(
            shop_id, FLASH_SALE_ITEMS_PATH, params={"flash_sale_id": template_id, "offset": 0, "limit": 100}
        )
        body = response.get("response") or {}
        return collect_template_items(body.get("item_info") or [], body.get("models") or [])

    def _load(self, job_id: int) -> Optional[FlashSaleAutoJob]:
        db = self.session_factory()
        try:
            job = db.query(FlashSaleAutoJob).filter(FlashSaleAutoJob.id == job_id).first()
            if job is not None:
                db.expunge(job)
            return job
        finally:
            db.close()

    def _claim(self, job_id: int) -> bool:
        """Move scheduled -> processing; False if another run got there first"""
        db = self.session_factory()
        try:
            result = db.execute(
                update(FlashSaleAutoJob)
                .where(FlashSaleAutoJob.id == job_id, FlashSaleAutoJob.status == JOB_SCHEDULED)
                .values(status=JOB_PROCESSING, updated_at=datetime.utcnow())
            )
            db.commit()
            return result.rowcount == 1
        finally:
            db.close()

    def _finish(self, job_id: int, status: str, **values):
        db = self.session_factory()
        try:
            db.execute(
                update(FlashSaleAutoJob)
                .where(FlashSaleAutoJob.id == job_id)
                .values(status=status, processed_at=datetime.utcnow(), updated_at=datetime.utcnow(), **values)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.error(f"Failed to record outcome of flash sale job {job_id}: {e}")
            raise
        finally:
            db.close()
