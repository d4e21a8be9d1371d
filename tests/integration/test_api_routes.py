"""
Integration Tests - Analytics API Routes

Runs the FastAPI app against an in-memory SQLite database seeded through
the ORM models.
"""
import warnings

import pytest
from sqlalchemy.exc import OperationalError, SAWarning

from src.database.connection import get_db_dependency
from src.database.models import FinancialStatus

WAREHOUSE = "Hq Warehouse (1)"


@pytest.fixture
async def store_traffic(builder):
    """Tampa and Orlando clear the floors; the warehouse never ranks"""
    (
        builder
        .visitors("Tampa", "2024-03-01T10:00:00", 120)
        .visitors("Tampa", "2024-03-02T10:00:00", 80)
        .visitors("Orlando", "2024-03-01T11:00:00", 150)
        .visitors(WAREHOUSE, "2024-03-01T09:00:00", 500)
        .visitors("Tampa", "2024-04-01T10:00:00", 9999)
    )
    for n in range(6):
        builder.order("Tampa", f"2024-03-01T1{n}:00:00", 100.0, email=f"t{n}@example.com")
    for n in range(5):
        builder.order("Orlando", f"2024-03-01T1{n}:30:00", 200.0, email=f"o{n}@example.com")
    for n in range(10):
        builder.order(WAREHOUSE, f"2024-03-01T1{n % 10}:45:00", 100.0)
    builder.order("Tampa", "2024-03-02T12:00:00", 5000.0, status=FinancialStatus.REFUNDED.value)
    await builder.commit()
    return builder


@pytest.fixture
async def product_sales(builder):
    """Two catalog products sold at Tampa this year and last year"""
    (
        builder
        .product("111", "Speedgoat 5", "Hoka", shopify_class="Trail")
        .product("222", "Essential Tee", "Brooks", shopify_class="Tops")
        .product("333", "Mystery Item", "Unknown Vendor", shopify_class="Socks")
        .product("444", "Gift Card", "Store", shopify_class="Gift Cards")
        .order("Tampa", "2024-03-05T10:00:00", 330.0, items=[("111", 100.0, 2), ("222", 30.0, 1), ("999", 70.0, 1)])
        .order("Tampa", "2023-03-05T10:00:00", 100.0, items=[("111", 50.0, 2)])
        .order("Ecom", "2023-06-01T10:00:00", 10.0)
    )
    await builder.commit()
    return builder


class _BrokenSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


class TestRequestValidation:
    """Tests for the single-field error contract"""
    
    @pytest.mark.parametrize("path", ["/api/rankings", "/api/ly-comparison"])
    async def test_missing_dates(self, client, path):
        response = await client.get(path, params={"startDate": "2024-03-01"})
        
        assert response.status_code == 400
        assert response.json() == {"error": "Start date and end date are required"}
    
    async def test_reversed_dates(self, client):
        response = await client.get(
            "/api/rankings", params={"startDate": "2024-03-31", "endDate": "2024-03-01"}
        )
        
        assert response.status_code == 400
        assert response.json() == {"error": "Start date must not be after end date"}
    
    async def test_malformed_date(self, client):
        response = await client.get(
            "/api/rankings", params={"startDate": "March 1st", "endDate": "2024-03-31"}
        )
        
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request parameters")
    
    async def test_database_error_is_generic_500(self, app, client):
        async def broken_db():
            yield _BrokenSession()
        
        app.dependency_overrides[get_db_dependency] = broken_db
        
        response = await client.get(
            "/api/rankings", params={"startDate": "2024-03-01", "endDate": "2024-03-31"}
        )
        
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestRankingsEndpoint:
    """Tests for GET /api/rankings"""
    
    async def test_ranks_eligible_stores(self, client, store_traffic):
        response = await client.get(
            "/api/rankings",
            params={"startDate": "2024-03-01", "endDate": "2024-03-31"},
        )
        
        assert response.status_code == 200
        body = response.json()
        assert [r["location"] for r in body["rankings"]] == ["Orlando", "Tampa"]
        
        orlando, tampa = body["rankings"]
        assert orlando["efficiency_score"] == 1.0
        assert tampa["efficiency_score"] == 2.0
        assert tampa["visitors"] == 200
        assert tampa["transactions"] == 6
        assert tampa["revenue"] == pytest.approx(600.0)
        assert tampa["days_active"] == 2
        assert orlando["unique_customers"] == 5
        
        assert body["summary"] == {
            "total_stores": 2,
            "total_visitors": 350,
            "total_revenue": pytest.approx(1600.0),
            "date_range_days": 31,
        }
        assert body["chartData"]["labels"] == ["Orlando", "Tampa"]
        assert body["chartData"]["datasets"][0]["backgroundColor"][0] == "rgba(0, 255, 0, 0.7)"
    
    async def test_minimums_override_defaults(self, client, store_traffic):
        response = await client.get(
            "/api/rankings",
            params={
                "startDate": "2024-03-01",
                "endDate": "2024-03-31",
                "minVisitors": 160,
                "minOrders": 0,
            },
        )
        
        assert [r["location"] for r in response.json()["rankings"]] == ["Tampa"]
    
    async def test_negative_minimum_rejected(self, client):
        response = await client.get(
            "/api/rankings",
            params={"startDate": "2024-03-01", "endDate": "2024-03-31", "minVisitors": -1},
        )
        
        assert response.status_code == 400
    
    async def test_empty_range(self, client, store_traffic):
        response = await client.get(
            "/api/rankings",
            params={"startDate": "2022-01-01", "endDate": "2022-01-31"},
        )
        
        assert response.status_code == 200
        body = response.json()
        assert body["rankings"] == []
        assert body["chartData"] == {"labels": [], "datasets": []}
        assert body["summary"]["total_stores"] == 0


class TestComparisonEndpoint:
    """Tests for GET /api/ly-comparison and its lookups"""
    
    PARAMS = {"startDate": "2024-03-01", "endDate": "2024-03-31"}
    
    async def test_rows_and_summary(self, client, product_sales):
        response = await client.get("/api/ly-comparison", params=self.PARAMS)
        
        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"data", "summary", "brandSummary", "dateRanges"}
        assert body["brandSummary"] is None
        
        first, second = body["data"]
        assert first["upc"] == "111"
        assert first["productName"] == "Speedgoat 5"
        assert first["category"] == "Footwear"
        assert first["thisYearSales"] == pytest.approx(200.0)
        assert first["lastYearSales"] == pytest.approx(100.0)
        assert first["percentageChange"] == pytest.approx(100.0)
        assert first["dollarChange"] == pytest.approx(100.0)
        assert first["thisYearUnits"] == 2
        assert first["percentOfTotal"] == pytest.approx(200.0 / 300.0 * 100)
        assert second["upc"] == "222"
        assert second["percentageChange"] == pytest.approx(100.0)
        
        summary = body["summary"]
        assert summary["totalUPCs"] == 2
        assert summary["positiveUPCs"] == 2
        assert summary["negativeUPCs"] == 0
        assert summary["totalThisYear"] == pytest.approx(230.0)
        assert summary["totalLastYear"] == pytest.approx(100.0)
        
        assert body["dateRanges"] == {
            "thisYearStart": "2024-03-01",
            "thisYearEnd": "2024-03-31",
            "lastYearStart": "2023-03-01",
            "lastYearEnd": "2023-03-31",
        }
    
    async def test_vendor_filter_adds_brand_summary(self, client, product_sales):
        response = await client.get(
            "/api/ly-comparison", params={**self.PARAMS, "vendor": "Hoka", "category": "footwear"}
        )
        body = response.json()
        
        assert [row["upc"] for row in body["data"]] == ["111"]
        brand = body["brandSummary"]
        assert brand["brand"] == "Hoka"
        assert brand["category"] == "Footwear"
        assert brand["uniqueProducts"] == 1
        assert brand["totalPercentOfSales"] == pytest.approx(200.0 / 300.0 * 100)
    
    async def test_category_filter(self, client, product_sales):
        response = await client.get(
            "/api/ly-comparison", params={**self.PARAMS, "category": "apparel"}
        )
        
        assert [row["upc"] for row in response.json()["data"]] == ["222"]
    
    async def test_matches_only(self, client, product_sales):
        response = await client.get(
            "/api/ly-comparison", params={**self.PARAMS, "matchType": "matches"}
        )
        
        assert [row["upc"] for row in response.json()["data"]] == ["111"]
    
    async def test_store_filter(self, client, product_sales):
        response = await client.get(
            "/api/ly-comparison", params={**self.PARAMS, "stores": "Orlando"}
        )
        body = response.json()
        
        assert body["data"] == []
        assert body["summary"]["totalUPCs"] == 0
    
    async def test_vendors(self, client, product_sales):
        response = await client.get("/api/ly-comparison/vendors")
        
        assert response.json() == ["Brooks", "Hoka", "Store"]
    
    async def test_categories(self, client, product_sales):
        response = await client.get("/api/ly-comparison/categories")
        
        assert response.json() == ["Accessories", "Apparel", "Footwear"]
    
    async def test_lookups_build_without_sqlalchemy_warnings(self, client, product_sales):
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            for path in ("/api/ly-comparison/vendors", "/api/ly-comparison/categories", "/api/locations"):
                response = await client.get(path)
                
                assert response.status_code == 200, path


class TestLocationsEndpoint:
    """Tests for GET /api/locations"""
    
    async def test_physical_stores_and_ecom(self, client, product_sales):
        response = await client.get("/api/locations")
        
        assert response.json() == {
            "locations": ["all_stores", "Tampa", "ecom"],
            "physicalStores": ["Tampa"],
            "hasEcom": True,
            "allLocations": ["Ecom", "Tampa"],
        }


class TestHealthEndpoints:
    
    async def test_liveness(self, client):
        response = await client.get("/api/health/live")
        
        assert response.status_code == 200
        assert response.json() == {"status": "alive"}
    
    async def test_security_headers(self, client):
        response = await client.get("/api/health/live")
        
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers
