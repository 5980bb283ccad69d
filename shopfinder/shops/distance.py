from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Unrounded great-circle distance in kilometers.

    Every rounded variant below derives from this value so meters shown by
    the API and kilometers shown in the UI never disagree.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) * math.sin(d_lat / 2)
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) * math.sin(d_lng / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> int:
    """Distance rounded to the nearest meter."""
    return int(_round_half_up(haversine_km(lat1, lng1, lat2, lng2) * 1000))


def distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in kilometers rounded to two decimals, for display."""
    return _round_half_up(haversine_km(lat1, lng1, lat2, lng2), 2)


def format_distance(km: float) -> str:
    if km < 1:
        return f"{int(_round_half_up(km * 1000))}m"
    if km < 10:
        return f"{km:.1f}km"
    return f"{int(_round_half_up(km))}km"


def coordinates_valid(lat: float | None, lng: float | None) -> bool:
    """True when both values are finite and inside the WGS84 ranges."""
    if lat is None or lng is None:
        return False
    try:
        lat_f, lng_f = float(lat), float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        return False
    return -90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0
