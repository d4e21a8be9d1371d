"""
Demo Database Seeder

Creates the schema and loads a generated demo dataset:

    python -m src.ingestion.seed_db --days 60
"""

import argparse
import asyncio
from typing import Any, Dict, List, Type

import polars as pl
from sqlalchemy import insert

from src.config.logging import configure_logging, get_logger
from src.data.generators import generate_demo_dataset
from src.database.connection import close_database, get_db, get_engine, init_database
from src.database.models import Base, CatalogItem, DoorCount, ShopifyOrder, ShopifyOrderItem

logger = get_logger(__name__)

CHUNK_SIZE = 1000

# Load order respects the order -> line item foreign key
TABLES: List[tuple] = [
    ("catalog", CatalogItem),
    ("door_counts", DoorCount),
    ("orders", ShopifyOrder),
    ("order_items", ShopifyOrderItem),
]


async def execute_batch_insert(model: Type[Base], records: List[Dict[str, Any]]) -> None:
    """Insert records in chunks with Core INSERT"""
    if not records:
        return
    
    async with get_db() as db:
        for i in range(0, len(records), CHUNK_SIZE):
            await db.execute(insert(model), records[i:i + CHUNK_SIZE])
    
    logger.info("Inserted records", table=model.__tablename__, rows=len(records))


async def create_schema() -> None:
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed(frames: Dict[str, pl.DataFrame]) -> None:
    """Load generated frames into their tables"""
    await create_schema()
    for key, model in TABLES:
        await execute_batch_insert(model, frames[key].to_dicts())


async def main(days: int, seed_value: int) -> None:
    configure_logging()
    logger.info("Starting database seeding", days=days)
    await init_database()
    
    try:
        await seed(generate_demo_dataset(days=days, seed=seed_value))
        logger.info("Database seeding completed")
    finally:
        await close_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the sales database with demo data")
    parser.add_argument("--days", type=int, default=60, help="Days of history per year (default: 60)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()
    
    asyncio.run(main(args.days, args.seed))
