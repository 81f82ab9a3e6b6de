"""
Shopee Ads (CPC) campaigns, performance and budget schedules

Campaign and performance rows accumulate: they are upserted on their
natural key so history outside the synced window is kept.
"""
from sqlalchemy import (
    Column, Integer, BigInteger, String, Float, Date, DateTime, JSON, Boolean, Text,
    UniqueConstraint,
)
from datetime import datetime

from shopsync.models.base import Base


class PerformanceMetricsMixin:
    """Metric columns shared by campaign-level and shop-level performance rows"""
    impression = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    ctr = Column(Float, default=0)  # percent
    expense = Column(Float, default=0)
    direct_order = Column(Integer, default=0)
    direct_gmv = Column(Float, default=0)
    broad_order = Column(Integer, default=0)
    broad_gmv = Column(Float, default=0)
    direct_item_sold = Column(Integer, default=0)
    broad_item_sold = Column(Integer, default=0)
    roas = Column(Float, default=0)
    acos = Column(Float, default=0)  # percent


class AdsCampaign(Base):
    """Product-level ads campaign settings"""
    __tablename__ = "ads_campaigns"
    __table_args__ = (
        UniqueConstraint("shop_id", "campaign_id", name="uq_ads_campaigns_shop_campaign"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    campaign_id = Column(BigInteger, nullable=False)

    ad_type = Column(String, nullable=True)  # manual, auto
    name = Column(Text, nullable=True)
    status = Column(String, nullable=True, index=True)  # ongoing, paused, scheduled, ended, ...
    campaign_placement = Column(String, nullable=True)
    bidding_method = Column(String, nullable=True)
    campaign_budget = Column(Float, nullable=True)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    item_count = Column(Integer, default=0)
    roas_target = Column(Float, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AdsPerformanceDaily(PerformanceMetricsMixin, Base):
    """Campaign performance per day"""
    __tablename__ = "ads_performance_daily"
    __table_args__ = (
        UniqueConstraint("shop_id", "campaign_id", "performance_date", name="uq_ads_perf_daily_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    campaign_id = Column(BigInteger, nullable=False, index=True)
    performance_date = Column(Date, nullable=False, index=True)

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AdsPerformanceHourly(PerformanceMetricsMixin, Base):
    """Campaign performance per hour"""
    __tablename__ = "ads_performance_hourly"
    __table_args__ = (
        UniqueConstraint("shop_id", "campaign_id", "performance_date", "hour", name="uq_ads_perf_hourly_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    campaign_id = Column(BigInteger, nullable=False, index=True)
    performance_date = Column(Date, nullable=False, index=True)
    hour = Column(Integer, nullable=False)  # 0-23

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ShopPerformanceDaily(PerformanceMetricsMixin, Base):
    """Shop-level ads totals per day"""
    __tablename__ = "shop_performance_daily"
    __table_args__ = (
        UniqueConstraint("shop_id", "performance_date", name="uq_shop_perf_daily_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    performance_date = Column(Date, nullable=False, index=True)
    source = Column(String, nullable=True)  # upstream, campaign_rollup

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ShopPerformanceHourly(PerformanceMetricsMixin, Base):
    """Shop-level ads totals per hour"""
    __tablename__ = "shop_performance_hourly"
    __table_args__ = (
        UniqueConstraint("shop_id", "performance_date", "hour", name="uq_shop_perf_hourly_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    performance_date = Column(Date, nullable=False, index=True)
    hour = Column(Integer, nullable=False)
    source = Column(String, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ScheduledAdsBudget(Base):
    """
    Budget to apply to a campaign during an hour range

    specific_dates (YYYY-MM-DD strings) take precedence over days_of_week
    (0 = Sunday). Neither set means every day.
    """
    __tablename__ = "scheduled_ads_budgets"
    __table_args__ = (
        UniqueConstraint("shop_id", "campaign_id", "hour_start", "hour_end", name="uq_scheduled_ads_budget_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    campaign_id = Column(BigInteger, nullable=False, index=True)
    campaign_name = Column(Text, nullable=True)
    ad_type = Column(String, nullable=False, default="manual")  # manual, auto
    hour_start = Column(Integer, nullable=False)
    hour_end = Column(Integer, nullable=False)  # exclusive
    budget = Column(Float, nullable=False)
    days_of_week = Column(JSON, nullable=True)
    specific_dates = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AdsBudgetLog(Base):
    """Outcome of each scheduled budget change"""
    __tablename__ = "ads_budget_logs"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    campaign_id = Column(BigInteger, nullable=False)
    campaign_name = Column(Text, nullable=True)
    schedule_id = Column(Integer, nullable=True, index=True)
    new_budget = Column(Float, nullable=True)
    status = Column(String, nullable=False)  # success, failed
    error_message = Column(Text, nullable=True)
    executed_at = Column(DateTime, default=datetime.utcnow, index=True)
