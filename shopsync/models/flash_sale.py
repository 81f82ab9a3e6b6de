"""
Flash sale mirror and auto-registration jobs
"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, JSON, Text, UniqueConstraint, Index
from datetime import datetime

from shopsync.models.base import Base


class FlashSale(Base):
    """
    Shop flash sales as last reported by Shopee (replaced on every sync)
    """
    __tablename__ = "flash_sales"
    __table_args__ = (
        UniqueConstraint("shop_id", "flash_sale_id", name="uq_flash_sales_shop_sale"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    flash_sale_id = Column(BigInteger, nullable=False)
    timeslot_id = Column(BigInteger, nullable=True, index=True)

    status = Column(Integer, nullable=True)  # 0 deleted, 1 enabled, 2 disabled, 3 system rejected
    type = Column(Integer, nullable=True, index=True)  # 1 upcoming, 2 ongoing, 3 expired
    start_time = Column(DateTime, nullable=True, index=True)
    end_time = Column(DateTime, nullable=True)

    enabled_item_count = Column(Integer, default=0)
    item_count = Column(Integer, default=0)
    remindme_count = Column(Integer, default=0)
    click_count = Column(Integer, default=0)
    raw_response = Column(JSON, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class FlashSaleAutoJob(Base):
    """
    A timeslot the operator asked us to register a flash sale for

    Items are copied from the shop's most recent upcoming/ongoing sale.
    """
    __tablename__ = "flash_sale_auto_jobs"
    __table_args__ = (
        Index("ix_flash_sale_auto_jobs_due", "status", "scheduled_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    user_id = Column(String, nullable=True)
    timeslot_id = Column(BigInteger, nullable=False)
    slot_start_time = Column(DateTime, nullable=False)
    slot_end_time = Column(DateTime, nullable=True)
    scheduled_at = Column(DateTime, nullable=False)

    status = Column(String, default="scheduled", nullable=False)  # scheduled, processing, success, error
    flash_sale_id = Column(BigInteger, nullable=True)
    items_added = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
