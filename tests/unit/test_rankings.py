"""
Unit Tests - Store Efficiency Ranking
"""
from datetime import date

import pytest

from src.analytics.rankings import (
    CHART_LABEL,
    RANK_METRICS,
    StoreEfficiencyRanker,
    sales_frame,
    visitor_frame,
)

START = date(2024, 1, 1)
END = date(2024, 1, 7)


def _sales(location, day, transactions, revenue, avg=None, customers=None):
    return {
        "location": location,
        "date": day,
        "transactions": transactions,
        "revenue": revenue,
        "avg_transaction_value": avg if avg is not None else (revenue / transactions if transactions else 0.0),
        "unique_customers": customers if customers is not None else transactions,
    }


def _many_stores(n: int):
    visitors = visitor_frame([
        {"location": f"Store {i:02d}", "date": "2024-01-01", "visitors": 100 + i}
        for i in range(n)
    ])
    sales = sales_frame([
        _sales(f"Store {i:02d}", "2024-01-01", 10 + i, 1000.0 + 50 * i)
        for i in range(n)
    ])
    return visitors, sales


class TestMergeDaily:
    """Tests for merging visitor and sales rows"""
    
    def test_day_on_one_side_is_zero_filled(self):
        """A day with only door counts keeps zero sales, and vice versa"""
        visitors = visitor_frame([{"location": "Alpha", "date": "2024-01-01", "visitors": 80}])
        sales = sales_frame([_sales("Alpha", "2024-01-02", 3, 300.0)])
        
        merged = StoreEfficiencyRanker().merge_daily(visitors, sales).sort("date")
        
        assert merged.height == 2
        first, second = merged.to_dicts()
        assert first["visitors"] == 80
        assert first["transactions"] == 0
        assert first["revenue"] == 0.0
        assert second["visitors"] == 0
        assert second["transactions"] == 3
    
    def test_duplicate_sensor_rows_are_summed(self):
        """Several sensor rows for one store-day add up"""
        visitors = visitor_frame([
            {"location": "Alpha", "date": "2024-01-01", "visitors": 30},
            {"location": "Alpha", "date": "2024-01-01", "visitors": 20},
        ])
        
        merged = StoreEfficiencyRanker().merge_daily(visitors, sales_frame())
        
        assert merged["visitors"].to_list() == [50]


class TestAggregateStores:
    """Tests for folding daily rows per store"""
    
    def test_totals_and_derived_metrics(self, two_store_visitors, two_store_sales):
        ranker = StoreEfficiencyRanker()
        stores = ranker.aggregate_stores(ranker.merge_daily(two_store_visitors, two_store_sales))
        alpha = stores.filter(stores["location"] == "Alpha").to_dicts()[0]
        
        assert alpha["visitors"] == 100
        assert alpha["transactions"] == 6
        assert alpha["revenue"] == pytest.approx(1000.0)
        assert alpha["days_active"] == 2
        assert alpha["conversion_rate"] == pytest.approx(0.06)
        assert alpha["revenue_per_visitor"] == pytest.approx(10.0)
        assert alpha["customers_per_day"] == pytest.approx(3.0)
        assert alpha["revenue_per_day"] == pytest.approx(500.0)
        assert alpha["transactions_per_day"] == pytest.approx(3.0)
    
    def test_avg_transaction_value_is_mean_of_daily_averages(self, two_store_visitors, two_store_sales):
        """(150 + 200) / 2, not the transaction-weighted 1000 / 6"""
        ranker = StoreEfficiencyRanker()
        stores = ranker.aggregate_stores(ranker.merge_daily(two_store_visitors, two_store_sales))
        alpha = stores.filter(stores["location"] == "Alpha").to_dicts()[0]
        
        assert alpha["avg_transaction_value"] == pytest.approx(175.0)
    
    def test_idle_days_are_not_active(self):
        """A day with zero visitors and zero sales does not count"""
        visitors = visitor_frame([
            {"location": "Alpha", "date": "2024-01-01", "visitors": 40},
            {"location": "Alpha", "date": "2024-01-02", "visitors": 0},
        ])
        ranker = StoreEfficiencyRanker()
        
        stores = ranker.aggregate_stores(ranker.merge_daily(visitors, sales_frame()))
        
        assert stores["days_active"].to_list() == [1]
        assert stores["avg_transaction_value"].to_list() == [0.0]
    
    def test_zero_visitors_gives_zero_ratios(self):
        """Sales without door counts produce 0 rather than a division error"""
        ranker = StoreEfficiencyRanker()
        sales = sales_frame([_sales("Online", "2024-01-01", 5, 500.0)])
        
        stores = ranker.aggregate_stores(ranker.merge_daily(visitor_frame(), sales))
        
        row = stores.to_dicts()[0]
        assert row["conversion_rate"] == 0.0
        assert row["revenue_per_visitor"] == 0.0


class TestEligibility:
    """Tests for the visitor/order floors"""
    
    def test_store_without_door_counts_is_excluded(self):
        """Even with zero thresholds a store needs real traffic"""
        visitors = visitor_frame([{"location": "Alpha", "date": "2024-01-01", "visitors": 10}])
        sales = sales_frame([
            _sales("Alpha", "2024-01-01", 1, 100.0),
            _sales("Online", "2024-01-01", 50, 5000.0),
        ])
        
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(visitors, sales, START, END)
        
        assert [r["location"] for r in result.rankings] == ["Alpha"]
    
    def test_thresholds_apply_to_visitors_and_orders(self):
        visitors = visitor_frame([
            {"location": "Busy", "date": "2024-01-01", "visitors": 150},
            {"location": "Quiet", "date": "2024-01-01", "visitors": 90},
            {"location": "Browsers", "date": "2024-01-01", "visitors": 300},
        ])
        sales = sales_frame([
            _sales("Busy", "2024-01-01", 10, 900.0),
            _sales("Quiet", "2024-01-01", 10, 900.0),
            _sales("Browsers", "2024-01-01", 4, 400.0),
        ])
        
        result = StoreEfficiencyRanker(min_visitors=100, min_orders=5).rank(visitors, sales, START, END)
        
        assert [r["location"] for r in result.rankings] == ["Busy"]
        for row in result.rankings:
            assert row["visitors"] >= 100
            assert row["transactions"] >= 5
    
    def test_no_eligible_stores_returns_empty_result(self, two_store_visitors, two_store_sales):
        """Nothing clears the floors: empty but valid"""
        result = StoreEfficiencyRanker(min_visitors=10_000).rank(
            two_store_visitors, two_store_sales, START, END
        )
        
        assert result.rankings == []
        assert result.chart_data == {"labels": [], "datasets": []}
        assert result.summary == {
            "total_stores": 0,
            "total_visitors": 0,
            "total_revenue": 0.0,
            "date_range_days": 0,
        }
    
    def test_no_rows_at_all(self):
        result = StoreEfficiencyRanker().rank(visitor_frame(), sales_frame(), START, END)
        
        assert result.rankings == []


class TestRanking:
    """Tests for metric ranks and the efficiency score"""
    
    def test_lower_traffic_store_wins_revenue_per_visitor(self, two_store_visitors, two_store_sales):
        """Same revenue, half the visitors: 20 vs 10 per visitor"""
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(
            two_store_visitors, two_store_sales, START, END
        )
        by_location = {r["location"]: r for r in result.rankings}
        
        assert by_location["Bravo"]["revenue_per_visitor"] == pytest.approx(20.0)
        assert by_location["Alpha"]["revenue_per_visitor"] == pytest.approx(10.0)
        assert by_location["Bravo"]["revenue_per_visitor_rank"] == 1
        assert by_location["Alpha"]["revenue_per_visitor_rank"] == 2
    
    def test_efficiency_score_is_mean_of_ranks(self, two_store_visitors, two_store_sales):
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(
            two_store_visitors, two_store_sales, START, END
        )
        
        assert [r["location"] for r in result.rankings] == ["Bravo", "Alpha"]
        bravo, alpha = result.rankings
        assert (bravo["conversion_rank"], bravo["revenue_per_visitor_rank"],
                bravo["total_revenue_rank"], bravo["avg_transaction_rank"]) == (1, 1, 2, 1)
        assert bravo["efficiency_score"] == pytest.approx(1.25)
        assert alpha["efficiency_score"] == pytest.approx(1.75)
    
    def test_ties_break_by_location_name(self, two_store_visitors, two_store_sales):
        """Equal revenue: the alphabetically first store takes rank 1"""
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(
            two_store_visitors, two_store_sales, START, END
        )
        by_location = {r["location"]: r for r in result.rankings}
        
        assert by_location["Alpha"]["total_revenue_rank"] == 1
        assert by_location["Bravo"]["total_revenue_rank"] == 2
    
    def test_ranks_are_permutations(self):
        visitors, sales = _many_stores(8)
        
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(visitors, sales, START, END)
        
        expected = list(range(1, 9))
        for _, rank_col in RANK_METRICS:
            assert sorted(r[rank_col] for r in result.rankings) == expected
    
    def test_output_sorted_by_efficiency_score(self):
        visitors, sales = _many_stores(12)
        
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(visitors, sales, START, END)
        scores = [r["efficiency_score"] for r in result.rankings]
        
        assert scores == sorted(scores)
    
    def test_summary(self, two_store_visitors, two_store_sales):
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(
            two_store_visitors, two_store_sales, START, END
        )
        
        assert result.summary == {
            "total_stores": 2,
            "total_visitors": 150,
            "total_revenue": pytest.approx(2000.0),
            "date_range_days": 7,
        }


class TestChart:
    """Tests for the efficiency chart payload"""
    
    def test_chart_limited_to_top_fifteen(self):
        visitors, sales = _many_stores(20)
        
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(visitors, sales, START, END)
        chart = result.chart_data
        dataset = chart["datasets"][0]
        
        assert len(result.rankings) == 20
        assert chart["labels"] == [r["location"] for r in result.rankings[:15]]
        assert dataset["label"] == CHART_LABEL
        assert dataset["data"] == [r["efficiency_score"] for r in result.rankings[:15]]
    
    def test_colors_run_green_to_red(self):
        visitors, sales = _many_stores(15)
        
        result = StoreEfficiencyRanker(min_visitors=0, min_orders=0).rank(visitors, sales, START, END)
        colors = result.chart_data["datasets"][0]["backgroundColor"]
        
        assert colors[0] == "rgba(0, 255, 0, 0.7)"
        assert colors[7] == "rgba(127, 127, 0, 0.7)"
        assert colors[-1] == "rgba(255, 0, 0, 0.7)"
