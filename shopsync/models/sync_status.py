"""
Per-shop sync progress, polled by the dashboard
"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, JSON, Boolean, Text, UniqueConstraint
from datetime import datetime

from shopsync.models.base import Base


class SyncStatus(Base):
    """
    One row per (shop, resource kind)

    is_syncing is advisory; overlapping runs are not blocked.
    """
    __tablename__ = "sync_status"
    __table_args__ = (
        UniqueConstraint("shop_id", "resource_kind", name="uq_sync_status_shop_kind"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    resource_kind = Column(String, nullable=False)  # flash_sales, products, ads

    is_syncing = Column(Boolean, default=False, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)
    last_sync_error = Column(Text, nullable=True)
    progress = Column(JSON, nullable=True)  # {"step": ..., "percent": ...}
    last_result = Column(JSON, nullable=True)
    triggered_by = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
