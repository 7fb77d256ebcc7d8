"""
Approximate "nearby" search.

The search area is a latitude/longitude rectangle around the centre, not a
great-circle disc. Near the poles cos(latitude) tends to 0 and the longitude
span grows without bound; callers get a very wide box rather than an error.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.property import Property

EARTH_RADIUS_KM = 6371
DEFAULT_RADIUS_KM = 10.0


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


def bounding_box(latitude: float, longitude: float, radius_km: float) -> BoundingBox:
    radius_rad = radius_km / EARTH_RADIUS_KM
    lat_delta = radius_rad * (180 / math.pi)
    lon_delta = lat_delta / math.cos(latitude * math.pi / 180)
    return BoundingBox(
        min_lat=latitude - lat_delta,
        max_lat=latitude + lat_delta,
        min_lon=longitude - lon_delta,
        max_lon=longitude + lon_delta,
    )


async def find_nearby_ids(
    db: AsyncSession,
    latitude: float,
    longitude: float,
    radius_km: float = DEFAULT_RADIUS_KM,
) -> list[str]:
    """Ids of every property whose coordinates fall inside the box; [] if none."""
    box = bounding_box(latitude, longitude, radius_km)
    stmt = select(Property.id).where(
        Property.latitude.between(box.min_lat, box.max_lat),
        Property.longitude.between(box.min_lon, box.max_lon),
    )
    return list((await db.execute(stmt)).scalars().all())
