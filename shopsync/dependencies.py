"""
Builds the shared service objects once per process.

The shop cache lives here and is handed to every service that reads or
invalidates it; nothing else holds module-level state.
"""
from functools import lru_cache

from shopsync.config import get_settings
from shopsync.connectors.shopee_client import ShopeeClient
from shopsync.models.base import SessionLocal
from shopsync.services.ads_budget_scheduler import AdsBudgetScheduler
from shopsync.services.credential_store import CredentialStore
from shopsync.services.flash_sale_scheduler import FlashSaleAutoScheduler
from shopsync.services.reconciler import Reconciler
from shopsync.services.sync_orchestrator import SyncOrchestrator
from shopsync.utils.cache import ResponseCache

settings = get_settings()


@lru_cache()
def get_cache() -> ResponseCache:
    return ResponseCache(ttl=settings.shop_cache_ttl_seconds, max_entries=settings.shop_cache_max_entries)


@lru_cache()
def get_credential_store() -> CredentialStore:
    return CredentialStore(SessionLocal, cache=get_cache())


@lru_cache()
def get_client() -> ShopeeClient:
    return ShopeeClient(get_credential_store())


@lru_cache()
def get_reconciler() -> Reconciler:
    return Reconciler(SessionLocal, cache=get_cache())


@lru_cache()
def get_orchestrator() -> SyncOrchestrator:
    return SyncOrchestrator(get_client(), get_reconciler(), SessionLocal)


@lru_cache()
def get_flash_sale_scheduler() -> FlashSaleAutoScheduler:
    return FlashSaleAutoScheduler(get_client(), SessionLocal)


@lru_cache()
def get_ads_budget_scheduler() -> AdsBudgetScheduler:
    return AdsBudgetScheduler(get_client(), SessionLocal)
