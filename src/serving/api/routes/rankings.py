"""
Store Rankings Endpoint

Ranks stores by traffic-adjusted efficiency for a date range.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from src.analytics.queries import fetch_daily_sales, fetch_daily_visitors
from src.analytics.rankings import StoreEfficiencyRanker
from src.config import get_settings
from src.database.connection import get_db_dependency
from src.serving.api.errors import require_dates

router = APIRouter()
logger = structlog.get_logger(__name__)


class StoreRanking(BaseModel):
    """One store's totals, derived metrics and ranks"""
    location: str
    visitors: int
    transactions: int
    revenue: float
    unique_customers: int
    days_active: int
    avg_transaction_value: float
    conversion_rate: float
    revenue_per_visitor: float
    customers_per_day: float
    revenue_per_day: float
    transactions_per_day: float
    conversion_rank: int
    revenue_per_visitor_rank: int
    total_revenue_rank: int
    avg_transaction_rank: int
    efficiency_score: float = Field(description="Mean of the four ranks, lower is better")


class ChartDataset(BaseModel):
    label: str
    data: List[float]
    backgroundColor: List[str]


class ChartData(BaseModel):
    labels: List[str]
    datasets: List[ChartDataset]


class RankingSummary(BaseModel):
    total_stores: int
    total_visitors: int
    total_revenue: float
    date_range_days: int


class RankingsResponse(BaseModel):
    """Store rankings response"""
    rankings: List[StoreRanking]
    chartData: ChartData
    summary: RankingSummary


@router.get("/rankings", response_model=RankingsResponse)
async def get_store_rankings(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    min_visitors: Optional[int] = Query(None, alias="minVisitors", ge=0),
    min_orders: Optional[int] = Query(None, alias="minOrders", ge=0),
    db: AsyncSession = Depends(get_db_dependency),
) -> Dict[str, Any]:
    """
    Rank stores on conversion rate, revenue per visitor, total revenue and
    average transaction value; the efficiency score averages the four ranks.
    
    Only stores with door-count data that meet both minimums are ranked.
    """
    require_dates(start_date, end_date)
    analytics = get_settings().analytics
    
    ranker = StoreEfficiencyRanker(
        min_visitors=analytics.default_min_visitors if min_visitors is None else min_visitors,
        min_orders=analytics.default_min_orders if min_orders is None else min_orders,
        chart_top_n=analytics.chart_top_n,
    )
    
    logger.info(
        "get_store_rankings called",
        start_date=str(start_date),
        end_date=str(end_date),
        min_visitors=ranker.min_visitors,
        min_orders=ranker.min_orders,
    )
    
    visitors = await fetch_daily_visitors(db, start_date, end_date)
    sales = await fetch_daily_sales(db, start_date, end_date)
    result = ranker.rank(visitors, sales, start_date, end_date)
    
    logger.info(
        "Store rankings computed",
        stores=result.summary["total_stores"],
        visitor_rows=visitors.height,
        sales_rows=sales.height,
    )
    
    return {
        "rankings": result.rankings,
        "chartData": result.chart_data,
        "summary": result.summary,
    }
