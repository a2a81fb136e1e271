from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Numeric,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from .base import Base


class Product(Base):
    """Digital product sold in the storefront"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    image_url = Column(String(1024), nullable=False)
    preview_media_url = Column(String(1024), nullable=True)
    telegram_link = Column(String(1024), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    prices = relationship("Price", back_populates="product", cascade="all, delete-orphan")
    regions = relationship("ProductRegion", back_populates="product", cascade="all, delete-orphan")


class Price(Base):
    """A purchasable tier of a product. The currency selects the payment path."""
    __tablename__ = "prices"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="BRL")
    category = Column(String(100), nullable=False)
    # Released to the buyer once the order completes
    delivery_link = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product", back_populates="prices")
    orders = relationship("Order", back_populates="price")


class ProductRegion(Base):
    """Country allow-list entry. A product without regions is visible everywhere."""
    __tablename__ = "product_regions"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    country_code = Column(String(2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product", back_populates="regions")

    __table_args__ = (
        UniqueConstraint("product_id", "country_code", name="uq_product_regions_product_country"),
    )
