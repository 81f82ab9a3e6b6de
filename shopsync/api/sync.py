"""
Sync trigger and status endpoints
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel
from typing import Optional

from shopsync.dependencies import get_credential_store, get_orchestrator
from shopsync.exceptions import CredentialError
from shopsync.services.sync_orchestrator import RESOURCE_KINDS
from shopsync.utils.logger import log

router = APIRouter(prefix="/sync", tags=["sync"])

ACTION_KINDS = {
    "sync_flash_sales": "flash_sales",
    "sync_products": "products",
    "sync_ads": "ads",
}


class SyncRequest(BaseModel):
    action: str  # sync_flash_sales, sync_products, sync_ads, status
    shop_id: int
    user_id: Optional[str] = None
    resource_kind: Optional[str] = None  # for status; defaults to ads
    background: bool = False


@router.post("")
async def trigger_sync(
    request: SyncRequest,
    background_tasks: BackgroundTasks,
    orchestrator=Depends(get_orchestrator),
    credentials=Depends(get_credential_store),
):
    """
    Run a sync for one shop, or read its status.

    Sync actions return {success, error?} plus the run's counters; with
    background=true the run is queued and progress is read via action=status.
    """
    if request.action == "status":
        kind = request.resource_kind or "ads"
        if kind not in RESOURCE_KINDS:
            raise HTTPException(status_code=400, detail=f"Unknown resource_kind: {kind}")
        return {"success": True, "status": orchestrator.get_status(request.shop_id, kind)}

    kind = ACTION_KINDS.get(request.action)
    if kind is None:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown action: {request.action}. Valid: {', '.join([*ACTION_KINDS, 'status'])}",
        )

    try:
        credentials.get_credentials(request.shop_id)
    except CredentialError as e:
        return {"success": False, "error": str(e)}

    if request.background:
        background_tasks.add_task(orchestrator.run, request.shop_id, kind, request.user_id)
        return {
            "success": True,
            "message": f"{kind} sync started in background",
            "check_progress": f"/sync/status/{request.shop_id}?resource_kind={kind}",
        }

    log.info(f"Sync requested: {request.action} shop={request.shop_id} user={request.user_id}")
    outcome = await orchestrator.run(request.shop_id, kind, request.user_id)
    return outcome.to_dict()


@router.get("/status/{shop_id}")
async def get_sync_status(
    shop_id: int,
    resource_kind: str = Query("ads", description="flash_sales, products or ads"),
    orchestrator=Depends(get_orchestrator),
):
    if resource_kind not in RESOURCE_KINDS:
        raise HTTPException(status_code=400, detail=f"Unknown resource_kind: {resource_kind}")
    return orchestrator.get_status(shop_id, resource_kind)
