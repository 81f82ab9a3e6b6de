"""
Configuration management for the shopsync service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Shopee Seller Ops Sync"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "*"  # comma-separated

    # Database
    database_url: str = "sqlite:///./shopsync.db"

    # Shopee partner API
    shopee_base_url: str = "https://partner.shopeemobile.com"
    shopee_proxy_url: Optional[str] = None  # forwards as {proxy}?url=<encoded>
    shopee_partner_id: Optional[int] = None  # default partner for newly connected shops
    shopee_partner_key: Optional[str] = None
    shopee_request_timeout_seconds: float = 30.0

    # Fetching
    api_call_delay_ms: int = 100
    list_page_size: int = 100
    item_detail_batch_size: int = 50
    campaign_detail_batch_size: int = 100
    campaign_list_limit: int = 5000

    # Flash sales
    flash_sale_expired_retention_days: int = 30
    flash_sale_min_lead_minutes: int = 5
    flash_sale_job_batch_limit: int = 10
    flash_sale_job_delay_ms: int = 500

    # Ads
    performance_window_days: int = 7
    marketplace_timezone: str = "Asia/Ho_Chi_Minh"

    # Cache
    shop_cache_ttl_seconds: int = 300
    shop_cache_max_entries: int = 80

    # Scheduler
    scheduler_enabled: bool = True
    ads_sync_interval_minutes: int = 60
    flash_sale_sync_interval_minutes: int = 30
    product_sync_hour: int = 2  # marketplace time
    flash_sale_scheduler_interval_minutes: int = 1
    ads_budget_scheduler_interval_minutes: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
