"""
Year-over-Year Product Comparison

Compares per-product sales for a date range against the same calendar
range one year earlier.

Pipeline:
1. Merge current-period and prior-period product totals by UPC
2. Derive dollar and percentage change (zero-base growth reported as 100%)
3. Drop products with no sales in either period
4. Share of the period's total sales and the overall summary
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from .categories import category_label
from .formatting import percentage_change, safe_divide, shift_years

logger = structlog.get_logger(__name__)


PRODUCT_SCHEMA = {
    "upc": pl.Utf8,
    "product_name": pl.Utf8,
    "vendor": pl.Utf8,
    "category": pl.Utf8,
    "sales": pl.Float64,
    "units": pl.Int64,
}

ROW_COLUMNS = [
    "upc",
    "product_name",
    "vendor",
    "category",
    "this_year_sales",
    "last_year_sales",
    "percentage_change",
    "dollar_change",
    "this_year_units",
    "last_year_units",
    "percent_of_total",
]

ALL_STORES = "all_stores"
ALL_VENDORS = "all"
ALL_CATEGORIES = "all"
MATCH_ALL = "all"
MATCH_BOTH_PERIODS = "matches"


@dataclass(frozen=True)
class ComparisonWindows:
    """Current period and the same calendar period one year earlier"""
    this_year_start: date
    this_year_end: date
    last_year_start: date
    last_year_end: date
    
    @classmethod
    def for_period(cls, start: date, end: date) -> "ComparisonWindows":
        return cls(
            this_year_start=start,
            this_year_end=end,
            last_year_start=shift_years(start, -1),
            last_year_end=shift_years(end, -1),
        )
    
    def to_dict(self) -> Dict[str, str]:
        return {
            "this_year_start": self.this_year_start.isoformat(),
            "this_year_end": self.this_year_end.isoformat(),
            "last_year_start": self.last_year_start.isoformat(),
            "last_year_end": self.last_year_end.isoformat(),
        }


@dataclass
class ComparisonFilters:
    """Optional report filters, in their query-string form"""
    stores: List[str] = field(default_factory=list)
    vendor: str = ALL_VENDORS
    category: str = ALL_CATEGORIES
    match_type: str = MATCH_ALL
    
    @classmethod
    def from_query(
        cls,
        stores: str = ALL_STORES,
        vendor: str = ALL_VENDORS,
        category: str = ALL_CATEGORIES,
        match_type: str = MATCH_ALL,
    ) -> "ComparisonFilters":
        store_list = []
        if stores and stores != ALL_STORES:
            store_list = [s.strip() for s in stores.split(",") if s.strip()]
        return cls(
            stores=store_list,
            vendor=vendor or ALL_VENDORS,
            category=category or ALL_CATEGORIES,
            match_type=match_type or MATCH_ALL,
        )
    
    @property
    def has_vendor(self) -> bool:
        return self.vendor != ALL_VENDORS
    
    @property
    def only_matches(self) -> bool:
        return self.match_type == MATCH_BOTH_PERIODS


@dataclass
class ComparisonResult:
    """Rows, summary and optional brand roll-up for one comparison request"""
    rows: List[Dict[str, Any]]
    summary: Dict[str, Any]
    brand_summary: Optional[Dict[str, Any]]
    date_ranges: Dict[str, str]


class YearOverYearComparator:
    """
    Derive year-over-year deltas from per-product period totals.
    
    Example:
        comparator = YearOverYearComparator(filters)
        result = comparator.compare(current_df, prior_df, total_sales, windows)
    """
    
    def __init__(self, filters: Optional[ComparisonFilters] = None):
        self.filters = filters or ComparisonFilters()
    
    @staticmethod
    def _collapse(df: pl.DataFrame) -> pl.DataFrame:
        return df.group_by("upc").agg(
            pl.col("product_name").first(),
            pl.col("vendor").first(),
            pl.col("category").first(),
            pl.col("sales").sum(),
            pl.col("units").sum(),
        )
    
    def merge_periods(self, current: pl.DataFrame, prior: pl.DataFrame) -> pl.DataFrame:
        """
        Full outer merge of the two periods by UPC.
        
        Product attributes come from the current period when the product
        sold in it, otherwise from the prior period.
        """
        current = self._collapse(current).rename({
            "sales": "this_year_sales",
            "units": "this_year_units",
        })
        prior = self._collapse(prior).rename({
            "product_name": "prior_product_name",
            "vendor": "prior_vendor",
            "category": "prior_category",
            "sales": "last_year_sales",
            "units": "last_year_units",
        })
        
        merged = current.join(prior, on="upc", how="full", coalesce=True)
        
        return merged.with_columns(
            pl.coalesce("product_name", "prior_product_name").alias("product_name"),
            pl.coalesce("vendor", "prior_vendor").alias("vendor"),
            pl.coalesce("category", "prior_category").alias("category"),
            pl.col("this_year_sales").fill_null(0.0),
            pl.col("last_year_sales").fill_null(0.0),
            pl.col("this_year_units").fill_null(0),
            pl.col("last_year_units").fill_null(0),
        ).drop(["prior_product_name", "prior_vendor", "prior_category"])
    
    def derive_changes(self, merged: pl.DataFrame, total_sales: float) -> pl.DataFrame:
        """
        Add change columns, drop no-signal rows and order by biggest movers.
        """
        this_year = pl.col("this_year_sales")
        last_year = pl.col("last_year_sales")
        
        rows = merged.filter(~((this_year == 0) & (last_year == 0)))
        if self.filters.only_matches:
            rows = rows.filter((this_year > 0) & (last_year > 0))
        
        if total_sales > 0:
            share = this_year / total_sales * 100
        else:
            share = pl.lit(0.0)
        
        rows = rows.with_columns(
            pl.when(last_year == 0)
            .then(pl.when(this_year > 0).then(100.0).otherwise(0.0))
            .otherwise((this_year - last_year) / last_year * 100)
            .alias("percentage_change"),
            (this_year - last_year).alias("dollar_change"),
            share.alias("percent_of_total"),
        )
        
        return rows.sort(
            [pl.col("dollar_change").abs(), pl.col("upc")],
            descending=[True, False],
        ).select(ROW_COLUMNS)
    
    @staticmethod
    def summarize(rows: pl.DataFrame) -> Dict[str, Any]:
        """Totals and mover counts across the returned rows."""
        total_this_year = float(rows["this_year_sales"].sum()) if rows.height else 0.0
        total_last_year = float(rows["last_year_sales"].sum()) if rows.height else 0.0
        
        return {
            "total_this_year": total_this_year,
            "total_last_year": total_last_year,
            "total_percentage_change": percentage_change(total_this_year, total_last_year),
            "total_dollar_change": total_this_year - total_last_year,
            "total_upcs": rows.height,
            "positive_upcs": rows.filter(pl.col("percentage_change") > 0).height,
            "negative_upcs": rows.filter(pl.col("percentage_change") < 0).height,
        }
    
    def brand_summary(
        self,
        rows: pl.DataFrame,
        summary: Dict[str, Any],
        total_sales: float,
    ) -> Optional[Dict[str, Any]]:
        """Single-record roll-up, only when one vendor is selected."""
        if not self.filters.has_vendor:
            return None
        
        return {
            "brand": self.filters.vendor,
            "category": category_label(self.filters.category),
            "this_year_sales": summary["total_this_year"],
            "last_year_sales": summary["total_last_year"],
            "this_year_units": int(rows["this_year_units"].sum()) if rows.height else 0,
            "last_year_units": int(rows["last_year_units"].sum()) if rows.height else 0,
            "percentage_change": summary["total_percentage_change"],
            "dollar_change": summary["total_dollar_change"],
            "unique_products": rows.height,
            "total_percent_of_sales": safe_divide(summary["total_this_year"], total_sales) * 100,
        }
    
    def compare(
        self,
        current: pl.DataFrame,
        prior: pl.DataFrame,
        total_sales: float,
        windows: ComparisonWindows,
    ) -> ComparisonResult:
        """Run the full comparison for one request."""
        rows = self.derive_changes(self.merge_periods(current, prior), total_sales)
        summary = self.summarize(rows)
        
        logger.debug(
            "Year-over-year comparison computed",
            products=rows.height,
            total_sales=total_sales,
            vendor=self.filters.vendor,
            category=self.filters.category,
        )
        
        return ComparisonResult(
            rows=rows.to_dicts(),
            summary=summary,
            brand_summary=self.brand_summary(rows, summary, total_sales),
            date_ranges=windows.to_dict(),
        )


def product_frame(records: Optional[List[Dict[str, Any]]] = None) -> pl.DataFrame:
    """Build a product-period frame with the expected schema."""
    return pl.DataFrame(records or [], schema=PRODUCT_SCHEMA)
