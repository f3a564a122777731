from config import (
    EARTH_RADIUS_METERS,
    LOCATION_KEY_PRECISION,
    MAX_VALID_LATITUDE,
    MAX_VALID_LONGITUDE,
    METERS_PER_MILE,
    MIN_VALID_LATITUDE,
    MIN_VALID_LONGITUDE,
)
from geopy.distance import great_circle

NO_GPS_LOCATION_KEY = 'no-gps'


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in meters on a 6,371 km sphere"""
    return great_circle((lat1, lon1), (lat2, lon2), radius=EARTH_RADIUS_METERS / 1000).meters


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return distance_meters(lat1, lon1, lat2, lon2) / METERS_PER_MILE


def is_valid_coordinate(lat: float, lon: float) -> bool:
    return MIN_VALID_LATITUDE <= lat <= MAX_VALID_LATITUDE and MIN_VALID_LONGITUDE <= lon <= MAX_VALID_LONGITUDE


def has_usable_gps(lat: float | None, lon: float | None) -> bool:
    """True for in-range coordinates other than the (0, 0) placeholder exports write for missing locations"""
    if lat is None or lon is None:
        return False
    if lat == 0 and lon == 0:
        return False
    return is_valid_coordinate(lat, lon)


def location_key(lat: float | None, lon: float | None) -> str:
    """Coordinates rounded to ~100 m, or the no-gps sentinel"""
    if not has_usable_gps(lat, lon):
        return NO_GPS_LOCATION_KEY
    return f"{lat:.{LOCATION_KEY_PRECISION}f},{lon:.{LOCATION_KEY_PRECISION}f}"
