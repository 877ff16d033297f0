# app/services/geo.py
import math
from typing import Optional, Tuple

from app.core.exceptions import ValidationFailed

# Sphere radii used to turn a distance into radians, per unit
EARTH_RADIUS = {
    "mi": 3963.2,
    "km": 6378.1,
}
EARTH_RADIUS_METERS = 6378.1 * 1000

# Multipliers from meters to the requested unit
DISTANCE_MULTIPLIER = {
    "mi": 0.000621371,
    "km": 0.001,
}


def parse_latlng(latlng: str) -> Tuple[float, float]:
    """Parses "lat,lng" into floats"""
    parts = [p.strip() for p in (latlng or "").split(",")]
    if len(parts) != 2 or not all(parts):
        raise ValidationFailed("Please provide latitude and longitude in the format lat,lng.")
    try:
        lat, lng = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValidationFailed("Please provide latitude and longitude in the format lat,lng.")
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValidationFailed("Please provide latitude and longitude in the format lat,lng.")
    return lat, lng


def check_unit(unit: str) -> str:
    if unit not in EARTH_RADIUS:
        raise ValidationFailed("Please provide unit as 'mi' or 'km'.")
    return unit


def central_angle(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle angle in radians between two points (haversine)"""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


def point_coordinates(location: Optional[dict]) -> Optional[Tuple[float, float]]:
    """Returns (lat, lng) for a stored GeoJSON-like point"""
    if not location or not location.get("coordinates"):
        return None
    lng, lat = location["coordinates"][:2]
    return lat, lng


def within_radius(location: Optional[dict], lat: float, lng: float, distance: float, unit: str) -> bool:
    point = point_coordinates(location)
    if point is None:
        return False
    radius = distance / EARTH_RADIUS[unit]
    return central_angle(lat, lng, point[0], point[1]) <= radius


def distance_to(location: Optional[dict], lat: float, lng: float, unit: str) -> Optional[float]:
    point = point_coordinates(location)
    if point is None:
        return None
    meters = central_angle(lat, lng, point[0], point[1]) * EARTH_RADIUS_METERS
    return meters * DISTANCE_MULTIPLIER[unit]
