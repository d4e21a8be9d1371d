"""
Synthetic Data Generator

Generates reproducible retail data for local development and demos:
- Product catalog with vendor and class taxonomy
- Door-sensor visitor counts per store and hour
- Orders with line items across stores, including last year
"""

import random
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

import numpy as np
import polars as pl
from faker import Faker

from src.analytics.categories import classify
from src.analytics.formatting import shift_years
from src.config import get_settings
from src.database.models import FinancialStatus

fake = Faker()


# =============================================================================
# CONFIGURATION
# =============================================================================

STORES = [
    "Augusta", "Avenues", "Bradenton", "Celebration", "Clearwater",
    "Melbourne", "Orange Park", "Perimeter", "Pier Park", "Tampa", "Tyrone",
]
ECOM_LOCATION = "Ecom"

VENDORS = ["Brooks", "Hoka", "Asics", "Saucony", "New Balance", "On", "Feetures", "Oofos"]

# (class, price range)
CLASS_PRICES: Dict[str, Tuple[float, float]] = {
    "Performance": (120, 180),
    "Trail": (130, 170),
    "Racing": (160, 250),
    "Lifestyle": (90, 140),
    "Sandals": (40, 80),
    "Tops": (30, 70),
    "Bottoms": (35, 80),
    "Bras": (35, 65),
    "Socks": (12, 20),
    "Hydration": (20, 60),
    "Insoles/Orthotics": (40, 60),
}

# Hourly door-count intervals while stores are open
OPEN_HOURS = range(10, 21)

ORDER_STATUSES = [FinancialStatus.PAID, FinancialStatus.REFUNDED, FinancialStatus.PENDING]
STATUS_WEIGHTS = [0.94, 0.04, 0.02]


# =============================================================================
# GENERATORS
# =============================================================================

class CatalogGenerator:
    """Generate a product catalog keyed by UPC"""
    
    def generate(self, n: int = 200) -> pl.DataFrame:
        """Generate n catalog rows"""
        products = []
        
        for _ in range(n):
            shopify_class = random.choice(list(CLASS_PRICES))
            dept = classify(shopify_class)
            low, high = CLASS_PRICES[shopify_class]
            vendor = random.choice(VENDORS)
            
            products.append({
                "upc": str(fake.unique.random_number(digits=12, fix_len=True)),
                "description": f"{vendor} {fake.word().title()} {shopify_class}",
                "vendor": vendor,
                "shopify_class": shopify_class,
                "shopify_dept": dept,
                "price": round(random.uniform(low, high), 2),
            })
        
        return pl.DataFrame(products)


class TrafficGenerator:
    """Generate hourly door counts per store"""
    
    def __init__(self, stores: Optional[List[str]] = None, seed: int = 42):
        self.stores = stores or STORES
        self.rng = np.random.default_rng(seed)
        # Each store gets its own baseline hourly traffic
        self.baselines = {store: float(self.rng.uniform(8, 40)) for store in self.stores}
    
    def generate(self, start: date, end: date) -> pl.DataFrame:
        """Generate counts for every open hour between start and end"""
        rows = []
        day = start
        
        while day <= end:
            weekend_boost = 1.4 if day.weekday() >= 5 else 1.0
            for store, baseline in self.baselines.items():
                counts = self.rng.poisson(baseline * weekend_boost, size=len(OPEN_HOURS))
                for hour, visitors in zip(OPEN_HOURS, counts):
                    rows.append({
                        "location": store,
                        "counted_at": datetime.combine(day, time(hour)),
                        "visitors": int(visitors),
                    })
            day += timedelta(days=1)
        
        return pl.DataFrame(rows)


class OrderGenerator:
    """Generate orders and line items against a catalog"""
    
    def __init__(
        self,
        catalog_df: pl.DataFrame,
        stores: Optional[List[str]] = None,
        seed: int = 42,
    ):
        self.products = catalog_df.select(["upc", "description", "vendor", "price"]).to_dicts()
        self.locations = (stores or STORES) + [ECOM_LOCATION]
        self.rng = np.random.default_rng(seed)
        self.employees = [fake.first_name() for _ in range(25)]
        self.customers = [fake.email() for _ in range(2000)]
    
    def generate(
        self,
        start: date,
        end: date,
        orders_per_store_day: float = 6.0,
        first_order_id: int = 5_000_000_000,
    ) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """
        Generate orders between start and end.
        
        Returns:
            Tuple of (orders_df, order_items_df)
        """
        orders = []
        items = []
        order_id = first_order_id
        day = start
        
        while day <= end:
            for location in self.locations:
                for _ in range(int(self.rng.poisson(orders_per_store_day))):
                    order_id += 1
                    created_at = datetime.combine(day, time(random.choice(OPEN_HOURS), random.randint(0, 59)))
                    
                    subtotal = 0.0
                    for product in random.sample(self.products, k=random.randint(1, 3)):
                        quantity = random.choice([1, 1, 1, 2])
                        line_total = round(product["price"] * quantity, 2)
                        subtotal += line_total
                        items.append({
                            "order_id": order_id,
                            "lineitem_name": product["description"],
                            "lineitem_sku": product["upc"],
                            "lineitem_price": product["price"],
                            "lineitem_quantity": quantity,
                            "lineitem_total": line_total,
                            "lineitem_vendor": product["vendor"],
                        })
                    
                    subtotal = round(subtotal, 2)
                    orders.append({
                        "id": order_id,
                        "name": f"#{order_id - first_order_id}",
                        "email": random.choice(self.customers),
                        "created_at": created_at,
                        "subtotal": subtotal,
                        "total_price": round(subtotal * 1.07, 2),
                        "total_tax": round(subtotal * 0.07, 2),
                        "financial_status": random.choices(ORDER_STATUSES, weights=STATUS_WEIGHTS)[0].value,
                        "location": location,
                        "employee": random.choice(self.employees),
                    })
            day += timedelta(days=1)
        
        return pl.DataFrame(orders), pl.DataFrame(items)


def generate_demo_dataset(
    end: Optional[date] = None,
    days: int = 60,
    seed: int = 42,
) -> Dict[str, pl.DataFrame]:
    """
    Generate catalog, door counts and orders for the last ``days`` days
    and the same window one year earlier.
    """
    random.seed(seed)
    Faker.seed(seed)
    fake.unique.clear()
    
    end = end or date.today()
    start = end - timedelta(days=days - 1)
    warehouse = get_settings().analytics.warehouse_location
    
    catalog = CatalogGenerator().generate()
    traffic = TrafficGenerator(STORES + [warehouse], seed=seed)
    orders = OrderGenerator(catalog, seed=seed)
    
    last_year_end = shift_years(end, -1)
    last_year_start = shift_years(start, -1)
    this_orders, this_items = orders.generate(start, end)
    prior_orders, prior_items = orders.generate(
        last_year_start, last_year_end, first_order_id=4_000_000_000
    )
    
    return {
        "catalog": catalog.drop("price"),
        "door_counts": traffic.generate(start, end),
        "orders": pl.concat([prior_orders, this_orders]),
        "order_items": pl.concat([prior_items, this_items]),
    }
