"""
Catalog category classification.

The catalog carries a fine-grained "class" taxonomy; reports bucket it into
Footwear / Apparel / Accessories. Rows without a class fall back to the
catalog department.
"""

from typing import Dict, List, Optional

from sqlalchemy import and_, case
from sqlalchemy.sql.elements import ColumnElement

FOOTWEAR = "Footwear"
APPAREL = "Apparel"
ACCESSORIES = "Accessories"
OTHER = "Other"

CATEGORY_CLASSES: Dict[str, List[str]] = {
    FOOTWEAR: [
        "Performance", "Trail", "Racing", "Speed", "Lifestyle", "Sandals", "XC/Track",
    ],
    APPAREL: [
        "Tops", "Bottoms", "Bras", "Outerwear",
    ],
    ACCESSORIES: [
        "Socks", "Headwear", "Accessories", "Compression", "Hydration", "Nutrition",
        "Injury/Recovery", "Bags/Belts", "Insoles/Orthotics", "GPS", "Sunglasses",
        "Electronic Accessories", "Fitness", "Safety", "Jewelry", "Skin Care",
        "Headphones", "Strollers", "Laces/Spikes", "GPS/HRM", "Watches", "Laces",
        "Bike Accessories", "Parts", "Bags", "Sunlasses", "Foam Rollers", "Rain Gear",
    ],
}

# Query-string value -> category label
CATEGORY_FILTERS: Dict[str, str] = {
    "footwear": FOOTWEAR,
    "apparel": APPAREL,
    "accessories": ACCESSORIES,
}


def classify(shopify_class: Optional[str], shopify_dept: Optional[str] = None) -> str:
    """Python-side mirror of :func:`category_expression`."""
    if shopify_class is not None:
        for label, classes in CATEGORY_CLASSES.items():
            if shopify_class in classes:
                return label
        return OTHER
    if shopify_dept in CATEGORY_CLASSES:
        return shopify_dept
    return OTHER


def category_expression(class_col, dept_col) -> ColumnElement:
    """SQL CASE expression that labels a catalog row with its category."""
    whens = [(class_col.in_(classes), label) for label, classes in CATEGORY_CLASSES.items()]
    whens += [
        (and_(class_col.is_(None), dept_col == label), label)
        for label in CATEGORY_CLASSES
    ]
    return case(*whens, else_=OTHER)


def category_label(category: str) -> str:
    """Display label for a category query value (``all`` -> ``All Categories``)."""
    if category == "all":
        return "All Categories"
    return CATEGORY_FILTERS.get(category, category)
