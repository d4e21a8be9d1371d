"""
Database Models - Transactional Sales Schema

The analytics endpoints read from the operational tables that the order
webhook and the door-count feed write to:

Transactional Tables:
- ShopifyOrder: One row per order, keyed by the upstream order id
- ShopifyOrderItem: Order line items (SKU, price, quantity)
- DoorCount: Door-sensor visitor counts per location and interval

Reference Tables:
- CatalogItem: Product catalog (UPC, vendor, class/department taxonomy)

Audit Tables:
- WebhookLog: Every webhook delivery and its processing outcome
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# Surrogate keys: BIGINT on PostgreSQL, INTEGER on SQLite so rowid autoincrement works
SurrogateKey = BigInteger().with_variant(Integer, "sqlite")


# =============================================================================
# ENUMERATIONS
# =============================================================================

class FinancialStatus(str, Enum):
    """Order payment state"""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    VOIDED = "voided"


class WebhookStatus(str, Enum):
    """Webhook processing outcome"""
    RECEIVED = "received"
    PROCESSED = "processed"
    FAILED = "failed"
    DUPLICATE = "duplicate"


# =============================================================================
# REFERENCE TABLES
# =============================================================================

class CatalogItem(Base):
    """
    Product Catalog
    
    Vendor-supplied catalog rows. The same UPC may appear more than once
    (re-imports, size runs), so readers de-duplicate by ``upc``.
    """
    __tablename__ = "product_catalog"
    
    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    upc: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    vendor: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    shopify_class: Mapped[Optional[str]] = mapped_column(String(100))
    shopify_dept: Mapped[Optional[str]] = mapped_column(String(100))


# =============================================================================
# TRANSACTIONAL TABLES
# =============================================================================

class ShopifyOrder(Base):
    """
    Order Table
    
    One row per order as delivered by the order webhook. ``location`` is the
    store (or online channel) that rang up the sale.
    """
    __tablename__ = "shopify_orders"
    
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(50), default="")
    order_number: Mapped[Optional[int]] = mapped_column(BigInteger)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    
    # Financials
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    financial_status: Mapped[Optional[str]] = mapped_column(String(30), index=True)
    fulfillment_status: Mapped[Optional[str]] = mapped_column(String(30))
    gateway: Mapped[Optional[str]] = mapped_column(String(50))
    test: Mapped[bool] = mapped_column(Boolean, default=False)
    
    # Store attribution
    location: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    employee: Mapped[Optional[str]] = mapped_column(String(100))
    fulfillment_location_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    
    # Customer / addresses
    customer_first_name: Mapped[Optional[str]] = mapped_column(String(100))
    customer_last_name: Mapped[Optional[str]] = mapped_column(String(100))
    shipping_city: Mapped[Optional[str]] = mapped_column(String(100))
    shipping_province: Mapped[Optional[str]] = mapped_column(String(100))
    shipping_country: Mapped[Optional[str]] = mapped_column(String(100))
    
    tags: Mapped[Optional[str]] = mapped_column(Text)
    note_attributes: Mapped[Optional[list]] = mapped_column(JSON)
    discount_codes: Mapped[Optional[list]] = mapped_column(JSON)
    
    inserted_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    
    items: Mapped[List["ShopifyOrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan"
    )
    
    __table_args__ = (
        Index("ix_shopify_orders_created_location", "created_at", "location"),
    )


class ShopifyOrderItem(Base):
    """Order line item"""
    __tablename__ = "shopify_order_items"
    
    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("shopify_orders.id"), nullable=False, index=True
    )
    lineitem_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    lineitem_name: Mapped[Optional[str]] = mapped_column(String(255))
    lineitem_sku: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    lineitem_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    lineitem_quantity: Mapped[int] = mapped_column(Integer, default=0)
    lineitem_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    lineitem_vendor: Mapped[Optional[str]] = mapped_column(String(100))
    product_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    variant_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    variant_title: Mapped[Optional[str]] = mapped_column(String(255))
    taxable: Mapped[bool] = mapped_column(Boolean, default=False)
    gift_card: Mapped[bool] = mapped_column(Boolean, default=False)
    
    order: Mapped["ShopifyOrder"] = relationship(back_populates="items")


class DoorCount(Base):
    """
    Door Sensor Counts
    
    Visitor counts per location per sensor interval. Several rows per day
    are normal; analytics sum them per (location, date).
    """
    __tablename__ = "door_counts"
    
    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    location: Mapped[Optional[str]] = mapped_column(String(100))
    counted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    visitors: Mapped[int] = mapped_column(Integer, default=0)
    
    __table_args__ = (
        Index("ix_door_counts_location_time", "location", "counted_at"),
    )


# =============================================================================
# AUDIT TABLES
# =============================================================================

class WebhookLog(Base):
    """Webhook delivery audit trail"""
    __tablename__ = "shopify_webhook_log"
    
    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    webhook_topic: Mapped[str] = mapped_column(String(100), nullable=False)
    shopify_order_id: Mapped[Optional[str]] = mapped_column(String(50))
    processing_status: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
