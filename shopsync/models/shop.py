"""
Connected shop credentials
"""
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Text
from datetime import datetime

from shopsync.models.base import Base


class Shop(Base):
    """
    Partner identity and token pair for a connected Shopee shop

    access_token/refresh_token are always written together; partner fields
    only change when the shop is reconnected.
    """
    __tablename__ = "shops"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, unique=True, index=True, nullable=False)
    shop_name = Column(String, nullable=True)
    region = Column(String(8), nullable=True)
    user_id = Column(String, nullable=True, index=True)  # who connected it

    # Partner credential
    partner_id = Column(BigInteger, nullable=False)
    partner_key = Column(Text, nullable=False)

    # OAuth-style token pair
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    token_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
