"""
Analytics Queries

Parameterized SQL aggregations feeding the ranking and comparison
pipelines. Every filter value is a bound parameter; nothing user-supplied
is concatenated into SQL text.
"""

from datetime import date, datetime, time, timedelta
from typing import List, Tuple

import polars as pl
from sqlalchemy import Select, and_, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.database.models import CatalogItem, DoorCount, ShopifyOrder, ShopifyOrderItem
from .categories import CATEGORY_FILTERS, OTHER, category_expression
from .comparison import ComparisonFilters, product_frame
from .rankings import sales_frame, visitor_frame


def _bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    """Half-open timestamp bounds covering calendar days ``start``..``end``."""
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


def _day(value) -> str:
    # DATE() comes back as a date on PostgreSQL and as text on SQLite
    return value.isoformat() if isinstance(value, date) else str(value)[:10]


# =============================================================================
# STORE RANKINGS
# =============================================================================

async def fetch_daily_visitors(db: AsyncSession, start: date, end: date) -> pl.DataFrame:
    """Door-count visitors per (location, date), warehouse excluded."""
    settings = get_settings()
    lower, upper = _bounds(start, end)
    day = func.date(DoorCount.counted_at)
    
    result = await db.execute(
        select(
            DoorCount.location,
            day.label("date"),
            func.sum(DoorCount.visitors).label("visitors"),
        )
        .where(
            and_(
                DoorCount.counted_at >= lower,
                DoorCount.counted_at < upper,
                DoorCount.location.is_not(None),
                DoorCount.location != settings.analytics.warehouse_location,
            )
        )
        .group_by(DoorCount.location, day)
    )
    
    return visitor_frame([
        {
            "location": row.location,
            "date": _day(row.date),
            "visitors": int(row.visitors or 0),
        }
        for row in result.all()
    ])


async def fetch_daily_sales(db: AsyncSession, start: date, end: date) -> pl.DataFrame:
    """Paid order totals per (location, date), warehouse and blank locations excluded."""
    settings = get_settings()
    lower, upper = _bounds(start, end)
    day = func.date(ShopifyOrder.created_at)
    
    result = await db.execute(
        select(
            ShopifyOrder.location,
            day.label("date"),
            func.count().label("transactions"),
            func.sum(ShopifyOrder.subtotal).label("revenue"),
            func.avg(ShopifyOrder.subtotal).label("avg_transaction_value"),
            func.count(distinct(ShopifyOrder.email)).label("unique_customers"),
        )
        .where(
            and_(
                ShopifyOrder.created_at >= lower,
                ShopifyOrder.created_at < upper,
                ShopifyOrder.financial_status == settings.analytics.paid_status,
                ShopifyOrder.location.is_not(None),
                ShopifyOrder.location != "",
                ShopifyOrder.location != settings.analytics.warehouse_location,
            )
        )
        .group_by(ShopifyOrder.location, day)
    )
    
    return sales_frame([
        {
            "location": row.location,
            "date": _day(row.date),
            "transactions": int(row.transactions or 0),
            "revenue": float(row.revenue or 0),
            "avg_transaction_value": float(row.avg_transaction_value or 0),
            "unique_customers": int(row.unique_customers or 0),
        }
        for row in result.all()
    ])


# =============================================================================
# YEAR-OVER-YEAR COMPARISON
# =============================================================================

def catalog_subquery():
    """One catalog row per UPC, labelled with its category bucket."""
    deduped = (
        select(
            CatalogItem.upc.label("upc"),
            func.max(CatalogItem.description).label("description"),
            func.max(CatalogItem.vendor).label("vendor"),
            func.max(CatalogItem.shopify_class).label("shopify_class"),
            func.max(CatalogItem.shopify_dept).label("shopify_dept"),
        )
        .group_by(CatalogItem.upc)
        .subquery("catalog_deduped")
    )
    return select(
        deduped.c.upc,
        deduped.c.description,
        deduped.c.vendor,
        category_expression(deduped.c.shopify_class, deduped.c.shopify_dept).label("category"),
    ).subquery("catalog")


def _line_sales():
    return ShopifyOrderItem.lineitem_price * ShopifyOrderItem.lineitem_quantity


def _store_condition(filters: ComparisonFilters) -> list:
    if filters.stores:
        return [ShopifyOrder.location.in_(filters.stores)]
    return []


def product_period_query(start: date, end: date, filters: ComparisonFilters) -> Select:
    """Per-UPC sales and units for one period under the report filters."""
    settings = get_settings()
    catalog = catalog_subquery()
    lower, upper = _bounds(start, end)
    
    conditions = [
        ShopifyOrder.created_at >= lower,
        ShopifyOrder.created_at < upper,
        catalog.c.upc.is_not(None),
        catalog.c.upc != "",
        catalog.c.description.is_not(None),
        catalog.c.vendor.is_not(None),
        catalog.c.vendor != "",
        catalog.c.vendor != settings.analytics.excluded_vendor,
    ]
    conditions += _store_condition(filters)
    if filters.has_vendor:
        conditions.append(catalog.c.vendor == filters.vendor)
    if filters.category in CATEGORY_FILTERS:
        conditions.append(catalog.c.category == CATEGORY_FILTERS[filters.category])
    
    product_name = func.coalesce(
        func.nullif(ShopifyOrderItem.lineitem_name, ""),
        func.nullif(catalog.c.description, ""),
    )
    
    return (
        select(
            catalog.c.upc,
            func.max(product_name).label("product_name"),
            catalog.c.vendor,
            catalog.c.category,
            func.sum(_line_sales()).label("sales"),
            func.sum(ShopifyOrderItem.lineitem_quantity).label("units"),
        )
        .select_from(ShopifyOrder)
        .join(ShopifyOrderItem, ShopifyOrderItem.order_id == ShopifyOrder.id)
        .join(catalog, ShopifyOrderItem.lineitem_sku == catalog.c.upc)
        .where(and_(*conditions))
        .group_by(catalog.c.upc, catalog.c.vendor, catalog.c.category)
    )


async def fetch_product_sales(
    db: AsyncSession,
    start: date,
    end: date,
    filters: ComparisonFilters,
) -> pl.DataFrame:
    """Run :func:`product_period_query` and return a product frame."""
    result = await db.execute(product_period_query(start, end, filters))
    
    return product_frame([
        {
            "upc": row.upc,
            "product_name": row.product_name,
            "vendor": row.vendor,
            "category": row.category,
            "sales": float(row.sales or 0),
            "units": int(row.units or 0),
        }
        for row in result.all()
    ])


async def fetch_total_sales(
    db: AsyncSession,
    start: date,
    end: date,
    filters: ComparisonFilters,
) -> float:
    """
    All line-item sales in the period under the store filter.
    
    Vendor and category do not narrow the total, so a product's (or a
    brand's) share is measured against everything the stores sold.
    """
    lower, upper = _bounds(start, end)
    conditions = [
        ShopifyOrder.created_at >= lower,
        ShopifyOrder.created_at < upper,
    ] + _store_condition(filters)
    
    result = await db.execute(
        select(func.coalesce(func.sum(_line_sales()), 0))
        .select_from(ShopifyOrder)
        .join(ShopifyOrderItem, ShopifyOrderItem.order_id == ShopifyOrder.id)
        .where(and_(*conditions))
    )
    return float(result.scalar() or 0)


# =============================================================================
# LOOKUPS
# =============================================================================

async def fetch_vendors(db: AsyncSession) -> List[str]:
    """Distinct catalog vendors, alphabetical."""
    excluded = get_settings().analytics.excluded_vendor
    result = await db.execute(
        select(CatalogItem.vendor).distinct()
        .where(
            and_(
                CatalogItem.vendor.is_not(None),
                CatalogItem.vendor != "",
                CatalogItem.vendor != excluded,
            )
        )
        .order_by(CatalogItem.vendor)
    )
    return [vendor for vendor in result.scalars().all()]


async def fetch_categories(db: AsyncSession) -> List[str]:
    """Category buckets present in the catalog, alphabetical, "Other" omitted."""
    category = category_expression(CatalogItem.shopify_class, CatalogItem.shopify_dept)
    result = await db.execute(
        select(category.label("category")).distinct()
        .where(
            (and_(CatalogItem.shopify_class.is_not(None), CatalogItem.shopify_class != ""))
            | (and_(CatalogItem.shopify_class.is_(None), CatalogItem.shopify_dept.is_not(None)))
        )
        .order_by("category")
    )
    return [c for c in result.scalars().all() if c != OTHER]


async def fetch_order_locations(db: AsyncSession) -> List[str]:
    """Distinct non-blank order locations, alphabetical."""
    result = await db.execute(
        select(ShopifyOrder.location).distinct()
        .where(and_(ShopifyOrder.location.is_not(None), ShopifyOrder.location != ""))
        .order_by(ShopifyOrder.location)
    )
    return list(result.scalars().all())
