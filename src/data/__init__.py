"""
Demo Data Module
"""
from .generators import CatalogGenerator, OrderGenerator, TrafficGenerator, generate_demo_dataset

__all__ = [
    "CatalogGenerator",
    "OrderGenerator",
    "TrafficGenerator",
    "generate_demo_dataset",
]
