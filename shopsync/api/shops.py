"""
Shop connection endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from typing import Optional

from shopsync.config import get_settings
from shopsync.dependencies import get_client, get_credential_store
from shopsync.exceptions import CredentialError, ReconcileError
from shopsync.utils.logger import log

settings = get_settings()

router = APIRouter(prefix="/shops", tags=["shops"])


class ShopConnect(BaseModel):
    shop_id: int
    access_token: str
    refresh_token: str
    expire_in: Optional[int] = None
    partner_id: Optional[int] = None  # falls back to the configured partner
    partner_key: Optional[str] = None
    shop_name: Optional[str] = None
    region: Optional[str] = None
    user_id: Optional[str] = None


@router.post("/connect")
async def connect_shop(payload: ShopConnect, store=Depends(get_credential_store)):
    """Store (or replace) a shop's partner credential and token pair"""
    try:
        creds = store.connect_shop(
            shop_id=payload.shop_id,
            partner_id=payload.partner_id or settings.shopee_partner_id,
            partner_key=payload.partner_key or settings.shopee_partner_key,
            access_token=payload.access_token,
            refresh_token=payload.refresh_token,
            expire_in=payload.expire_in,
            shop_name=payload.shop_name,
            region=payload.region,
            user_id=payload.user_id,
        )
    except CredentialError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReconcileError as e:
        log.error(f"Error connecting shop {payload.shop_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "success": True,
        "shop_id": creds.shop_id,
        "partner_id": creds.partner_id,
        "expires_at": creds.expires_at.isoformat() if creds.expires_at else None,
    }


@router.get("")
async def list_shops(user_id: Optional[str] = Query(None), store=Depends(get_credential_store)):
    return {"success": True, "shops": store.list_shops(user_id)}


@router.get("/{shop_id}/validate")
async def validate_shop(shop_id: int, client=Depends(get_client)):
    """Check Shopee still accepts the shop's token, refreshing it once if rejected"""
    try:
        valid = await client.validate_connection(shop_id)
    except CredentialError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "shop_id": shop_id, "valid": valid}
