"""
Product catalogue mirror
"""
from sqlalchemy import Column, Integer, BigInteger, String, Float, DateTime, JSON, Boolean, Text, UniqueConstraint
from datetime import datetime

from shopsync.models.base import Base


class Product(Base):
    """
    Shop item (replaced on every product sync)
    """
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("shop_id", "item_id", name="uq_products_shop_item"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    item_id = Column(BigInteger, nullable=False)

    item_name = Column(Text, nullable=True)
    item_sku = Column(String, nullable=True)
    item_status = Column(String, nullable=True, index=True)  # NORMAL, UNLIST, BANNED
    category_id = Column(BigInteger, nullable=True)
    image_url = Column(Text, nullable=True)
    image_url_list = Column(JSON, nullable=True)

    currency = Column(String(8), nullable=True)
    current_price = Column(Float, nullable=True)
    original_price = Column(Float, nullable=True)
    total_available_stock = Column(Integer, default=0)

    has_model = Column(Boolean, default=False)
    tier_variations = Column(JSON, nullable=True)
    create_time = Column(DateTime, nullable=True)
    update_time = Column(DateTime, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ProductModel(Base):
    """
    Variant of a product (size, colour, ...)
    """
    __tablename__ = "product_models"
    __table_args__ = (
        UniqueConstraint("shop_id", "item_id", "model_id", name="uq_product_models_shop_item_model"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(BigInteger, nullable=False, index=True)
    item_id = Column(BigInteger, nullable=False, index=True)
    model_id = Column(BigInteger, nullable=False)

    model_sku = Column(String, nullable=True)
    model_name = Column(Text, nullable=True)  # tier option names joined with " - "
    image_url = Column(Text, nullable=True)
    tier_index = Column(JSON, nullable=True)

    current_price = Column(Float, nullable=True)
    original_price = Column(Float, nullable=True)
    total_available_stock = Column(Integer, default=0)
    model_status = Column(String, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
