"""
Geofence validation service.
Uses Haversine formula to calculate distance between points.
"""
import math
from typing import Optional, Tuple
from ..config import settings


# Mean Earth radius in meters (spherical approximation)
EARTH_RADIUS_M = 6371000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2 +
        math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def inside_geofence(
    point_lat: float,
    point_lng: float,
    site_lat: float,
    site_lng: float,
    radius_m: Optional[float] = None,
) -> Tuple[bool, float]:
    """
    Check whether a point lies inside the circular geofence around a site.

    Args:
        point_lat: Caller latitude
        point_lng: Caller longitude
        site_lat: Site latitude
        site_lng: Site longitude
        radius_m: Geofence radius (default GEOFENCE_RADIUS_M)

    Returns:
        Tuple of (is_inside, distance_m). The boundary itself counts as inside.
    """
    if radius_m is None:
        radius_m = settings.geofence_radius_m

    distance = haversine_distance(point_lat, point_lng, site_lat, site_lng)
    return distance <= radius_m, distance


def accuracy_acceptable(accuracy_m: Optional[float], max_accuracy_m: Optional[float] = None) -> bool:
    """A missing accuracy reading is accepted; a reported one must be within the limit."""
    if accuracy_m is None:
        return True
    if max_accuracy_m is None:
        max_accuracy_m = settings.gps_accuracy_max_m
    return accuracy_m <= max_accuracy_m
