"""
Store Efficiency Ranking

Combines door-sensor traffic with paid sales to rank stores on four
independent metrics and fold the ranks into a single efficiency score.

Pipeline:
1. Merge visitor and sales rows by (location, date)
2. Fold daily rows into one aggregate per store
3. Keep stores with real traffic that clear the visitor/order floors
4. Rank each metric (descending) and average the four ranks
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from .formatting import date_range_days, efficiency_color

logger = structlog.get_logger(__name__)


VISITOR_SCHEMA = {
    "location": pl.Utf8,
    "date": pl.Utf8,
    "visitors": pl.Int64,
}

SALES_SCHEMA = {
    "location": pl.Utf8,
    "date": pl.Utf8,
    "transactions": pl.Int64,
    "revenue": pl.Float64,
    "avg_transaction_value": pl.Float64,
    "unique_customers": pl.Int64,
}

# (metric column, rank column); every metric ranks higher-is-better
RANK_METRICS = [
    ("conversion_rate", "conversion_rank"),
    ("revenue_per_visitor", "revenue_per_visitor_rank"),
    ("revenue", "total_revenue_rank"),
    ("avg_transaction_value", "avg_transaction_rank"),
]

OUTPUT_COLUMNS = [
    "location",
    "visitors",
    "transactions",
    "revenue",
    "unique_customers",
    "days_active",
    "avg_transaction_value",
    "conversion_rate",
    "revenue_per_visitor",
    "customers_per_day",
    "revenue_per_day",
    "transactions_per_day",
    "conversion_rank",
    "revenue_per_visitor_rank",
    "total_revenue_rank",
    "avg_transaction_rank",
    "efficiency_score",
]

CHART_LABEL = "Efficiency Score (Lower = Better)"


@dataclass
class RankingResult:
    """Rankings plus the chart and summary blocks sent to the dashboard"""
    rankings: List[Dict[str, Any]] = field(default_factory=list)
    chart_data: Dict[str, Any] = field(default_factory=lambda: {"labels": [], "datasets": []})
    summary: Dict[str, Any] = field(default_factory=lambda: {
        "total_stores": 0,
        "total_visitors": 0,
        "total_revenue": 0.0,
        "date_range_days": 0,
    })


def _ratio(numerator: str, denominator: str) -> pl.Expr:
    return (
        pl.when(pl.col(denominator) > 0)
        .then(pl.col(numerator) / pl.col(denominator))
        .otherwise(0.0)
    )


class StoreEfficiencyRanker:
    """
    Rank stores by conversion, revenue per visitor, total revenue and
    average transaction value.
    
    Ties within a metric are broken by location name so repeated calls
    return the same order.
    
    Example:
        ranker = StoreEfficiencyRanker(min_visitors=100, min_orders=5)
        result = ranker.rank(visitors_df, sales_df, start_date, end_date)
    """
    
    def __init__(
        self,
        min_visitors: int = 100,
        min_orders: int = 5,
        chart_top_n: int = 15,
    ):
        self.min_visitors = min_visitors
        self.min_orders = min_orders
        self.chart_top_n = chart_top_n
    
    def merge_daily(self, visitors: pl.DataFrame, sales: pl.DataFrame) -> pl.DataFrame:
        """
        Full outer merge of visitor and sales rows on (location, date).
        
        A day present on only one side keeps zeros for the other side.
        """
        keys = ["location", "date"]
        visitors = visitors.group_by(keys).agg(pl.col("visitors").sum())
        sales = sales.group_by(keys).agg(
            pl.col("transactions").sum(),
            pl.col("revenue").sum(),
            pl.col("avg_transaction_value").last(),
            pl.col("unique_customers").sum(),
        )
        
        merged = visitors.join(sales, on=keys, how="full", coalesce=True)
        
        return merged.with_columns(
            pl.col("visitors").fill_null(0),
            pl.col("transactions").fill_null(0),
            pl.col("revenue").fill_null(0.0),
            pl.col("avg_transaction_value").fill_null(0.0),
            pl.col("unique_customers").fill_null(0),
        )
    
    def aggregate_stores(self, daily: pl.DataFrame) -> pl.DataFrame:
        """
        Fold daily rows into one row per store with derived metrics.
        
        ``avg_transaction_value`` is the mean of the non-zero daily averages,
        not a transaction-weighted average.
        """
        stores = daily.group_by("location").agg(
            pl.col("visitors").sum(),
            pl.col("transactions").sum(),
            pl.col("revenue").sum(),
            pl.col("unique_customers").sum(),
            ((pl.col("transactions") > 0) | (pl.col("visitors") > 0))
            .sum()
            .cast(pl.Int64)
            .alias("days_active"),
            pl.col("avg_transaction_value")
            .filter(pl.col("avg_transaction_value") > 0)
            .mean()
            .alias("avg_transaction_value"),
        )
        
        return stores.with_columns(
            pl.col("avg_transaction_value").fill_null(0.0),
            _ratio("transactions", "visitors").alias("conversion_rate"),
            _ratio("revenue", "visitors").alias("revenue_per_visitor"),
            _ratio("unique_customers", "days_active").alias("customers_per_day"),
            _ratio("revenue", "days_active").alias("revenue_per_day"),
            _ratio("transactions", "days_active").alias("transactions_per_day"),
        )
    
    def filter_eligible(self, stores: pl.DataFrame) -> pl.DataFrame:
        """Drop stores without door counts or below the visitor/order floors."""
        return stores.filter(pl.col("visitors") > 0).filter(
            (pl.col("visitors") >= self.min_visitors)
            & (pl.col("transactions") >= self.min_orders)
        )
    
    def rank_stores(self, stores: pl.DataFrame) -> pl.DataFrame:
        """
        Attach the four 1-based metric ranks and the efficiency score.
        
        Returns stores ordered best (lowest score) first.
        """
        for metric, rank_col in RANK_METRICS:
            stores = (
                stores.sort([metric, "location"], descending=[True, False])
                .with_row_index(rank_col, offset=1)
                .with_columns(pl.col(rank_col).cast(pl.Int64))
            )
        
        stores = stores.with_columns(
            (pl.sum_horizontal([rank_col for _, rank_col in RANK_METRICS]) / len(RANK_METRICS))
            .alias("efficiency_score")
        )
        
        return stores.sort(["efficiency_score", "location"]).select(OUTPUT_COLUMNS)
    
    def build_chart(self, ranked: pl.DataFrame) -> Dict[str, Any]:
        """Bar chart payload for the best ``chart_top_n`` stores."""
        top = ranked.head(self.chart_top_n)
        span = max(self.chart_top_n - 1, 1)
        
        return {
            "labels": top["location"].to_list(),
            "datasets": [
                {
                    "label": CHART_LABEL,
                    "data": top["efficiency_score"].to_list(),
                    "backgroundColor": [efficiency_color(i, span) for i in range(top.height)],
                }
            ],
        }
    
    def rank(
        self,
        visitors: pl.DataFrame,
        sales: pl.DataFrame,
        start_date: date,
        end_date: date,
    ) -> RankingResult:
        """Run the full pipeline for one date range."""
        daily = self.merge_daily(visitors, sales)
        stores = self.filter_eligible(self.aggregate_stores(daily))
        
        logger.debug(
            "Store aggregates computed",
            daily_rows=daily.height,
            eligible_stores=stores.height,
            min_visitors=self.min_visitors,
            min_orders=self.min_orders,
        )
        
        if stores.height == 0:
            return RankingResult()
        
        ranked = self.rank_stores(stores)
        
        return RankingResult(
            rankings=ranked.to_dicts(),
            chart_data=self.build_chart(ranked),
            summary={
                "total_stores": ranked.height,
                "total_visitors": int(ranked["visitors"].sum()),
                "total_revenue": float(ranked["revenue"].sum()),
                "date_range_days": date_range_days(start_date, end_date),
            },
        )


def visitor_frame(records: Optional[List[Dict[str, Any]]] = None) -> pl.DataFrame:
    """Build a visitor frame with the expected schema (empty when no rows)."""
    return pl.DataFrame(records or [], schema=VISITOR_SCHEMA)


def sales_frame(records: Optional[List[Dict[str, Any]]] = None) -> pl.DataFrame:
    """Build a sales frame with the expected schema (empty when no rows)."""
    return pl.DataFrame(records or [], schema=SALES_SCHEMA)
