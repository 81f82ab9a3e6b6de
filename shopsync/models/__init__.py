"""Database models for the shopsync service"""

from shopsync.models.shop import Shop
from shopsync.models.sync_status import SyncStatus
from shopsync.models.flash_sale import FlashSale, FlashSaleAutoJob
from shopsync.models.product import Product, ProductModel
from shopsync.models.ads import (
    AdsCampaign,
    AdsPerformanceDaily,
    AdsPerformanceHourly,
    ShopPerformanceDaily,
    ShopPerformanceHourly,
    ScheduledAdsBudget,
    AdsBudgetLog,
)

__all__ = [
    "Shop",
    "SyncStatus",
    "FlashSale",
    "FlashSaleAutoJob",
    "Product",
    "ProductModel",
    "AdsCampaign",
    "AdsPerformanceDaily",
    "AdsPerformanceHourly",
    "ShopPerformanceDaily",
    "ShopPerformanceHourly",
    "ScheduledAdsBudget",
    "AdsBudgetLog",
]
