"""Geospatial and temporal helpers shared by the fraud rules."""

import math
from datetime import UTC, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

EARTH_RADIUS_KM = 6371.0


def distance_km(
    lat1: float | None,
    lon1: float | None,
    lat2: float | None,
    lon2: float | None,
) -> float:
    """Great-circle (haversine) distance in km. 0 when a point lacks coordinates."""
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return 0.0
    lat1_r, lon1_r = math.radians(lat1), math.radians(lon1)
    lat2_r, lon2_r = math.radians(lat2), math.radians(lon2)
    dlat = lat2_r - lat1_r
    dlon = lon2_r - lon1_r
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(a, 1.0)))


def hour_of_day(timestamp: datetime, zone: str | tzinfo = "UTC") -> int:
    """Hour of ``timestamp`` in ``zone``. Naive timestamps are taken as UTC."""
    tz = ZoneInfo(zone) if isinstance(zone, str) else zone
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(tz).hour


def window_start(now: datetime, window: timedelta) -> datetime:
    return now - window
