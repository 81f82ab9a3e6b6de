"""
Flash sale auto-scheduler tests.

Guards against:
1. Registering a sale for a timeslot that is about to start or already taken
2. A refused add_shop_flash_sale_items call marking a created sale as failed
3. The same job being processed twice
"""
import asyncio
from datetime import datetime, timedelta

import pytest

from shopsync.services.flash_sale_scheduler import (
    ADD_FLASH_SALE_ITEMS_PATH,
    CREATE_FLASH_SALE_PATH,
    FLASH_SALE_ITEMS_PATH,
    FlashSaleAutoScheduler,
)
from shopsync.services.flash_sale_sync import FLASH_SALE_LIST_PATH

from conftest import SHOP_ID

NOW = datetime(2026, 3, 1, 10, 0)
SLOT_START = NOW + timedelta(hours=2)
TIMESLOT = 555
OK = {"error": "", "message": ""}


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


@pytest.fixture
def scheduler(client, session_factory):
    return FlashSaleAutoScheduler(
        client, session_factory, min_lead_minutes=5, batch_limit=10, job_delay_ms=0, clock=lambda: NOW
    )


@pytest.fixture
def template_sale(reconciler):
    reconciler.reconcile(SHOP_ID, "flash_sales", [
        {"flash_sale_id": 900, "timeslot_id": 1, "type": 3, "start_time": NOW - timedelta(days=1)},
        {"flash_sale_id": 901, "timeslot_id": 2, "type": 1, "start_time": NOW + timedelta(hours=1)},
    ])


def _script_happy_path(transport, add_response=None):
    transport.add(FLASH_SALE_LIST_PATH, {**OK, "response": {"total_count": 1, "flash_sale_list": [
        {"flash_sale_id": 901, "timeslot_id": 2, "type": 1},
    ]}})
    transport.add(FLASH_SALE_ITEMS_PATH, {**OK, "response": {
        "item_info": [
            {"item_id": 11, "status": 1, "purchase_limit": 1},
            {"item_id": 12, "status": 1},
            {"item_id": 13, "status": 0},
        ],
        "models": [
            {"item_id": 11, "model_id": 0, "status": 1, "input_promotion_price": 49000, "campaign_stock": 5},
            {"item_id": 12, "model_id": 121, "status": 1, "input_promotion_price": 99000, "campaign_stock": 2},
            {"item_id": 12, "model_id": 122, "status": 1, "input_promotion_price": 89000, "campaign_stock": 2},
        ],
    }})
    transport.add(CREATE_FLASH_SALE_PATH, {**OK, "response": {"flash_sale_id": 777}})
    transport.add(ADD_FLASH_SALE_ITEMS_PATH, add_response or {**OK, "response": {"failed_items": []}})


def test_job_creates_sale_and_copies_items(scheduler, transport, template_sale):
    job = scheduler.schedule_job(SHOP_ID, TIMESLOT, SLOT_START)
    _script_happy_path(transport)

    summary = _run(scheduler.process_pending())

    assert summary["processed"] == 1
    assert summary["succeeded"] == 1
    assert transport.calls(FLASH_SALE_ITEMS_PATH)[0].params["flash_sale_id"] == "901"
    assert transport.calls(CREATE_FLASH_SALE_PATH)[0].body == {"timeslot_id": TIMESLOT}
    items = transport.calls(ADD_FLASH_SALE_ITEMS_PATH)[0].body["items"]
    assert items == [
        {"item_id": 11, "purchase_limit": 1, "item_input_promo_price": 49000, "item_stock": 5},
        {"item_id": 12, "purchase_limit": 0, "models": [
            {"model_id": 121, "input_promo_price": 99000, "stock": 2},
            {"model_id": 122, "input_promo_price": 89000, "stock": 2},
        ]},
    ]

    stored = scheduler.list_jobs(SHOP_ID)[0]
    assert stored["id"] == job["id"]
    assert stored["status"] == "success"
    assert stored["flash_sale_id"] == 777
    assert stored["items_added"] == 2
    assert stored["error_message"] is None


def test_add_failure_still_counts_as_created(scheduler, transport, template_sale):
    scheduler.schedule_job(SHOP_ID, TIMESLOT, SLOT_START)
    _script_happy_path(transport, add_response={"error": "shop_flash_sale.item_invalid", "message": "price too high"})

    result = _run(scheduler.process_pending())["results"][0]

    assert result["success"] is True
    stored = scheduler.list_jobs(SHOP_ID)[0]
    assert stored["status"] == "success"
    assert stored["items_added"] == 0
    assert stored["error_message"] == "Adding items failed: price too high"


def test_slot_starting_too_soon_is_rejected(scheduler, transport):
    scheduler.schedule_job(SHOP_ID, TIMESLOT, NOW + timedelta(minutes=3))

    result = _run(scheduler.process_pending())["results"][0]

    assert result["success"] is False
    assert scheduler.list_jobs(SHOP_ID)[0]["status"] == "error"
    assert transport.requests == []


def test_taken_timeslot_is_rejected(scheduler, transport, template_sale):
    scheduler.schedule_job(SHOP_ID, TIMESLOT, SLOT_START)
    transport.add(FLASH_SALE_LIST_PATH, {**OK, "response": {"flash_sale_list": [
        {"flash_sale_id": 950, "timeslot_id": TIMESLOT, "type": 1},
    ]}})

    result = _run(scheduler.process_pending())["results"][0]

    assert result["success"] is False
    assert "#950" in scheduler.list_jobs(SHOP_ID)[0]["error_message"]
    assert transport.calls(CREATE_FLASH_SALE_PATH) == []


def test_no_template_sale_is_rejected(scheduler, transport):
    scheduler.schedule_job(SHOP_ID, TIMESLOT, SLOT_START)
    transport.add(FLASH_SALE_LIST_PATH, {**OK, "response": {"flash_sale_list": []}})

    _run(scheduler.process_pending())

    stored = scheduler.list_jobs(SHOP_ID)[0]
    assert stored["status"] == "error"
    assert stored["error_message"] == "No eligible template items to copy"


def test_future_jobs_wait_and_finished_jobs_are_skipped(scheduler, transport, template_sale):
    later = scheduler.schedule_job(SHOP_ID, TIMESLOT, SLOT_START, scheduled_at=NOW + timedelta(hours=1))
    assert _run(scheduler.process_pending())["processed"] == 0

    scheduler.schedule_job(SHOP_ID, TIMESLOT + 1, SLOT_START)
    _script_happy_path(transport)
    _run(scheduler.process_pending())

    again = _run(scheduler.process_job(scheduler.list_jobs(SHOP_ID)[1]["id"]))
    assert again["skipped"] is True
    assert scheduler.list_jobs(SHOP_ID)[0]["id"] == later["id"]
    assert scheduler.list_jobs(SHOP_ID)[0]["status"] == "scheduled"
