"""
Last-Year Comparison Endpoints

Product and brand sales for a period against the same period last year,
plus the vendor and category lists used by the report filters.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from src.analytics.comparison import (
    ALL_CATEGORIES,
    ALL_STORES,
    ALL_VENDORS,
    MATCH_ALL,
    ComparisonFilters,
    ComparisonWindows,
    YearOverYearComparator,
)
from src.analytics.queries import (
    fetch_categories,
    fetch_product_sales,
    fetch_total_sales,
    fetch_vendors,
)
from src.database.connection import get_db_dependency
from src.serving.api.errors import require_dates

router = APIRouter()
logger = structlog.get_logger(__name__)


class CamelModel(BaseModel):
    """Serialized with camelCase keys, built from snake_case dicts"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductComparisonRow(CamelModel):
    upc: str
    product_name: Optional[str] = None
    vendor: Optional[str] = None
    category: Optional[str] = None
    this_year_sales: float
    last_year_sales: float
    percentage_change: float
    dollar_change: float
    this_year_units: int
    last_year_units: int
    percent_of_total: float


class ComparisonSummary(CamelModel):
    total_this_year: float
    total_last_year: float
    total_percentage_change: float
    total_dollar_change: float
    total_upcs: int = Field(alias="totalUPCs")
    positive_upcs: int = Field(alias="positiveUPCs")
    negative_upcs: int = Field(alias="negativeUPCs")


class BrandSummary(CamelModel):
    brand: str
    category: str
    this_year_sales: float
    last_year_sales: float
    this_year_units: int
    last_year_units: int
    percentage_change: float
    dollar_change: float
    unique_products: int
    total_percent_of_sales: float


class DateRanges(CamelModel):
    this_year_start: date
    this_year_end: date
    last_year_start: date
    last_year_end: date


class ComparisonResponse(CamelModel):
    """Last-year comparison response"""
    data: List[ProductComparisonRow]
    summary: ComparisonSummary
    brand_summary: Optional[BrandSummary] = None
    date_ranges: DateRanges


@router.get("/ly-comparison", response_model=ComparisonResponse)
async def get_ly_comparison(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    stores: str = Query(ALL_STORES, description="Comma-separated locations or all_stores"),
    vendor: str = Query(ALL_VENDORS),
    category: str = Query(ALL_CATEGORIES, description="all, footwear, apparel or accessories"),
    match_type: str = Query(MATCH_ALL, alias="matchType", description="all or matches"),
    db: AsyncSession = Depends(get_db_dependency),
) -> ComparisonResponse:
    """
    Compare product sales with the same calendar period one year earlier.
    
    Rows are ordered by absolute dollar change. ``matchType=matches`` keeps
    only products that sold in both periods; ``brandSummary`` is filled when
    a single vendor is selected.
    """
    require_dates(start_date, end_date)
    
    filters = ComparisonFilters.from_query(stores, vendor, category, match_type)
    windows = ComparisonWindows.for_period(start_date, end_date)
    
    logger.info(
        "get_ly_comparison called",
        start_date=str(start_date),
        end_date=str(end_date),
        stores=filters.stores or ALL_STORES,
        vendor=filters.vendor,
        category=filters.category,
        match_type=filters.match_type,
    )
    
    current = await fetch_product_sales(db, windows.this_year_start, windows.this_year_end, filters)
    prior = await fetch_product_sales(db, windows.last_year_start, windows.last_year_end, filters)
    total_sales = await fetch_total_sales(db, windows.this_year_start, windows.this_year_end, filters)
    
    result = YearOverYearComparator(filters).compare(current, prior, total_sales, windows)
    
    logger.info("Last-year comparison computed", products=result.summary["total_upcs"])
    
    return ComparisonResponse(
        data=result.rows,
        summary=result.summary,
        brand_summary=result.brand_summary,
        date_ranges=result.date_ranges,
    )


@router.get("/ly-comparison/vendors", response_model=List[str])
async def list_vendors(db: AsyncSession = Depends(get_db_dependency)) -> List[str]:
    """Vendors available for the brand filter."""
    return await fetch_vendors(db)


@router.get("/ly-comparison/categories", response_model=List[str])
async def list_categories(db: AsyncSession = Depends(get_db_dependency)) -> List[str]:
    """Category buckets present in the catalog."""
    return await fetch_categories(db)
