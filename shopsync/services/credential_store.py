"""
Per-shop partner identity and token pair storage.

The refreshed token pair is written in a single UPDATE so readers never see
a new access_token next to a stale refresh_token.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from shopsync.exceptions import CredentialError, ReconcileError
from shopsync.models.base import SessionLocal
from shopsync.models.shop import Shop
from shopsync.utils.cache import ResponseCache
from shopsync.utils.logger import log

SHOP_CACHE_PREFIX = "shops:"


@dataclass(frozen=True)
class ShopCredentials:
    shop_id: int
    partner_id: int
    partner_key: str
    access_token: str
    refresh_token: str
    expires_at: Optional[datetime] = None


def _expiry(expire_in: Optional[int]) -> Optional[datetime]:
    if not expire_in:
        return None
    return datetime.utcnow() + timedelta(seconds=int(expire_in))


class CredentialStore:
    """Reads and writes the shops table"""

    def __init__(self, session_factory: Callable = SessionLocal, cache: Optional[ResponseCache] = None):
        self.session_factory = session_factory
        self.cache = cache

    def connect_shop(
        self,
        shop_id: int,
        partner_id: int,
        partner_key: str,
        access_token: str,
        refresh_token: str,
        expire_in: Optional[int] = None,
        shop_name: Optional[str] = None,
        region: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ShopCredentials:
        """Create or wholesale-replace a shop's credentials"""
        if not partner_id or not partner_key:
            raise CredentialError(shop_id, "partner_id and partner_key are required")
        if not access_token or not refresh_token:
            raise CredentialError(shop_id, "access_token and refresh_token are required")

        db = self.session_factory()
        try:
            shop = db.query(Shop).filter(Shop.shop_id == shop_id).first()
            if shop is None:
                shop = Shop(shop_id=shop_id)
                db.add(shop)
            shop.partner_id = partner_id
            shop.partner_key = partner_key
            shop.access_token = access_token
            shop.refresh_token = refresh_token
            shop.expires_at = _expiry(expire_in)
            shop.token_updated_at = datetime.utcnow()
            shop.shop_name = shop_name if shop_name is not None else shop.shop_name
            shop.region = region if region is not None else shop.region
            shop.user_id = user_id if user_id is not None else shop.user_id
            db.commit()
            log.info(f"Connected shop {shop_id} (partner {partner_id})")
            creds = self._to_credentials(shop)
        except SQLAlchemyError as e:
            db.rollback()
            raise ReconcileError(f"Failed to save credentials for shop {shop_id}: {e}") from e
        finally:
            db.close()

        self._invalidate()
        return creds

    def get_credentials(self, shop_id: int) -> ShopCredentials:
        """Load credentials, raising CredentialError if the shop can't make calls"""
        db = self.session_factory()
        try:
            shop = db.query(Shop).filter(Shop.shop_id == shop_id).first()
            if shop is None:
                raise CredentialError(shop_id, "shop is not connected")
            if not shop.partner_id or not shop.partner_key:
                raise CredentialError(shop_id, "partner credentials are missing")
            if not shop.access_token or not shop.refresh_token:
                raise CredentialError(shop_id, "token pair is missing, reconnect the shop")
            return self._to_credentials(shop)
        finally:
            db.close()

    def save_refreshed_token(
        self,
        shop_id: int,
        access_token: str,
        refresh_token: str,
        expire_in: Optional[int] = None,
    ) -> ShopCredentials:
        """Persist a refreshed token pair atomically"""
        if not access_token or not refresh_token:
            raise CredentialError(shop_id, "refresh returned an incomplete token pair")

        now = datetime.utcnow()
        db = self.session_factory()
        try:
            result = db.execute(
                update(Shop)
                .where(Shop.shop_id == shop_id)
                .values(
                    access_token=access_token,
                    refresh_token=refresh_token,
                    expires_at=_expiry(expire_in),
                    token_updated_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount == 0:
                db.rollback()
                raise CredentialError(shop_id, "shop is not connected")
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise ReconcileError(f"Failed to save refreshed token for shop {shop_id}: {e}") from e
        finally:
            db.close()

        log.info(f"Saved refreshed token for shop {shop_id}")
        self._invalidate()
        return self.get_credentials(shop_id)

    def list_shops(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Connected shops without secrets, served from the cache when warm"""
        if self.cache is None:
            return self._load_shops(user_id)
        return self.cache.get_or_set(f"{SHOP_CACHE_PREFIX}{user_id or '*'}", lambda: self._load_shops(user_id))

    def _load_shops(self, user_id: Optional[str]) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            query = db.query(Shop)
            if user_id:
                query = query.filter(Shop.user_id == user_id)
            return [
                {
                    "shop_id": s.shop_id,
                    "shop_name": s.shop_name,
                    "region": s.region,
                    "partner_id": s.partner_id,
                    "expires_at": s.expires_at.isoformat() if s.expires_at else None,
                    "has_token": bool(s.access_token and s.refresh_token),
                }
                for s in query.order_by(Shop.shop_id).all()
            ]
        finally:
            db.close()

    def _invalidate(self):
        if self.cache is not None:
            self.cache.invalidate(SHOP_CACHE_PREFIX)

    @staticmethod
    def _to_credentials(shop: Shop) -> ShopCredentials:
        return ShopCredentials(
            shop_id=shop.shop_id,
            partner_id=shop.partner_id,
            partner_key=shop.partner_key,
            access_token=shop.access_token,
            refresh_token=shop.refresh_token,
            expires_at=shop.expires_at,
        )
