"""
Locations Endpoint

Store list for the dashboard's location pickers.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.analytics.comparison import ALL_STORES
from src.analytics.queries import fetch_order_locations
from src.database.connection import get_db_dependency

router = APIRouter()

ECOM_OPTION = "ecom"
ECOM_MARKERS = ("ecom", "online", "web")


class LocationsResponse(BaseModel):
    """Dropdown options plus the raw location lists"""
    locations: List[str]
    physicalStores: List[str]
    hasEcom: bool
    allLocations: List[str]


def is_ecom_location(location: str) -> bool:
    """True for online-sales pseudo-locations."""
    lowered = location.lower()
    return any(marker in lowered for marker in ECOM_MARKERS)


def build_location_options(locations: List[str]) -> LocationsResponse:
    """Split locations into physical stores and e-commerce, build dropdown options."""
    physical = [loc for loc in locations if not is_ecom_location(loc)]
    has_ecom = len(physical) < len(locations)
    
    options = [ALL_STORES] + physical
    if has_ecom:
        options.append(ECOM_OPTION)
    
    return LocationsResponse(
        locations=options,
        physicalStores=physical,
        hasEcom=has_ecom,
        allLocations=locations,
    )


@router.get("/locations", response_model=LocationsResponse)
async def list_locations(db: AsyncSession = Depends(get_db_dependency)) -> LocationsResponse:
    """Locations that have recorded orders."""
    return build_location_options(await fetch_order_locations(db))
