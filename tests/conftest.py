"""
Test Suite Configuration
"""
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.analytics.comparison import product_frame
from src.analytics.rankings import sales_frame, visitor_frame
from src.database.connection import get_db_dependency, get_session_factory
from src.database.models import (
    Base,
    CatalogItem,
    DoorCount,
    FinancialStatus,
    ShopifyOrder,
    ShopifyOrderItem,
)
from src.serving.api import create_api_app


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine with the full schema"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(session_factory):
    """API app wired to the test database"""
    app = create_api_app()
    
    async def override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    
    app.dependency_overrides[get_db_dependency] = override_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


# =============================================================================
# ROW BUILDERS
# =============================================================================

class SalesDataBuilder:
    """Adds door counts, catalog rows and orders to the test database"""
    
    def __init__(self, session: AsyncSession):
        self.session = session
        self._next_order_id = 1000
    
    def visitors(self, location: Optional[str], when: str, count: int) -> "SalesDataBuilder":
        self.session.add(DoorCount(
            location=location,
            counted_at=datetime.fromisoformat(when),
            visitors=count,
        ))
        return self
    
    def product(
        self,
        upc: str,
        description: str,
        vendor: str,
        shopify_class: Optional[str] = None,
        shopify_dept: Optional[str] = None,
    ) -> "SalesDataBuilder":
        self.session.add(CatalogItem(
            upc=upc,
            description=description,
            vendor=vendor,
            shopify_class=shopify_class,
            shopify_dept=shopify_dept,
        ))
        return self
    
    def order(
        self,
        location: Optional[str],
        when: str,
        subtotal: float,
        email: str = "shopper@example.com",
        status: str = FinancialStatus.PAID.value,
        items: Optional[List[tuple]] = None,
    ) -> "SalesDataBuilder":
        """``items`` are (sku, price, quantity) tuples."""
        self._next_order_id += 1
        order = ShopifyOrder(
            id=self._next_order_id,
            name=f"#{self._next_order_id}",
            email=email,
            created_at=datetime.fromisoformat(when),
            subtotal=Decimal(str(subtotal)),
            total_price=Decimal(str(subtotal)),
            financial_status=status,
            location=location,
        )
        order.items = [
            ShopifyOrderItem(
                lineitem_sku=sku,
                lineitem_name="",
                lineitem_price=Decimal(str(price)),
                lineitem_quantity=quantity,
                lineitem_total=Decimal(str(price * quantity)),
            )
            for sku, price, quantity in (items or [])
        ]
        self.session.add(order)
        return self
    
    async def commit(self) -> None:
        await self.session.commit()


@pytest.fixture
def builder(test_db) -> SalesDataBuilder:
    return SalesDataBuilder(test_db)


# =============================================================================
# FRAME FIXTURES
# =============================================================================

@pytest.fixture
def two_store_visitors():
    """Alpha: 100 visitors, Bravo: 50 visitors over two days"""
    return visitor_frame([
        {"location": "Alpha", "date": "2024-01-01", "visitors": 60},
        {"location": "Alpha", "date": "2024-01-02", "visitors": 40},
        {"location": "Bravo", "date": "2024-01-01", "visitors": 50},
    ])


@pytest.fixture
def two_store_sales():
    """Both stores take 1000 in revenue"""
    return sales_frame([
        {
            "location": "Alpha", "date": "2024-01-01", "transactions": 4,
            "revenue": 600.0, "avg_transaction_value": 150.0, "unique_customers": 4,
        },
        {
            "location": "Alpha", "date": "2024-01-02", "transactions": 2,
            "revenue": 400.0, "avg_transaction_value": 200.0, "unique_customers": 2,
        },
        {
            "location": "Bravo", "date": "2024-01-01", "transactions": 5,
            "revenue": 1000.0, "avg_transaction_value": 200.0, "unique_customers": 5,
        },
    ])


def product_row(upc: str, sales: float, units: int = 1, vendor: str = "Hoka",
                category: str = "Footwear", name: Optional[str] = None) -> dict:
    """One product-period row as returned by the product sales query"""
    return {
        "upc": upc,
        "product_name": name or f"Product {upc}",
        "vendor": vendor,
        "category": category,
        "sales": sales,
        "units": units,
    }


@pytest.fixture
def make_product():
    return product_row


@pytest.fixture
def empty_products():
    return product_frame()
