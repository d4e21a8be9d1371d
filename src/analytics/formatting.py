"""
Date and number helpers shared by the ranking and comparison pipelines.
"""

import math
from datetime import date


def shift_years(d: date, years: int) -> date:
    """
    Move a date by whole calendar years.
    
    Feb 29 lands on Feb 28 when the target year is not a leap year.
    """
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        return d.replace(year=d.year + years, day=28)


def date_range_days(start: date, end: date) -> int:
    """Inclusive number of calendar days between two dates."""
    return (end - start).days + 1


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 for a zero denominator."""
    if not denominator:
        return 0.0
    return numerator / denominator


def percentage_change(current: float, previous: float) -> float:
    """
    Percent change from ``previous`` to ``current``.
    
    Growth from a zero base is reported as a flat 100 (or 0 when there was
    nothing in either period), never infinity.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def efficiency_color(index: int, span: int = 14, alpha: float = 0.7) -> str:
    """
    Bar color for position ``index`` in the efficiency chart.
    
    Interpolates from green (index 0) to red (index == span).
    """
    ratio = index / span if span else 0.0
    red = math.floor(255 * ratio)
    green = math.floor(255 * (1 - ratio))
    return f"rgba({red}, {green}, 0, {alpha})"
