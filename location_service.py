"""
Location Service - distance and shipping fee calculation
"""

from typing import Dict, Optional, Any
import logging
import math

from config import settings
from models import GPSCoordinates
from wards import lookup_ward

logger = logging.getLogger(__name__)

# Earth radius used by the storefront's haversine (WGS-84 equatorial radius)
EARTH_RADIUS_M = 6378137.0

STORE_LOCATION = GPSCoordinates(
    latitude=settings.STORE_LATITUDE,
    longitude=settings.STORE_LONGITUDE,
)


def calculate_distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two GPS coordinates using Haversine formula
    Returns distance in meters.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def calculate_distance_km(origin: GPSCoordinates, destination: GPSCoordinates) -> float:
    """Great-circle distance in kilometers"""
    return calculate_distance_meters(
        origin.latitude, origin.longitude,
        destination.latitude, destination.longitude
    ) / 1000.0


def fee_for_distance(distance_km: float) -> int:
    """
    Shipping fee tier for a delivery distance

    Tiers are inclusive at their upper bound:
        <= 3 km  -> 15000
        <= 7 km  -> 25000
        beyond   -> 35000
    """
    if distance_km < 0:
        raise ValueError("distance_km must be non-negative")
    for max_km, fee in settings.SHIPPING_FEE_TIERS:
        if distance_km <= max_km:
            return fee
    return settings.SHIPPING_FEE_FAR


def resolve_coordinates(district: str, ward: str) -> Optional[GPSCoordinates]:
    """Coordinates of a district/ward pair, or None when it is not in the table"""
    found = lookup_ward(district, ward)
    if found is None:
        return None
    latitude, longitude = found
    return GPSCoordinates(latitude=latitude, longitude=longitude)


def calculate_shipping_fee(
    coordinates: Optional[GPSCoordinates],
    default_fee: float,
    store: GPSCoordinates = STORE_LOCATION
) -> Dict[str, Any]:
    """
    Shipping fee for a delivery coordinate

    Args:
        coordinates: Delivery coordinate, None when it could not be resolved
        default_fee: Flat fee used when there is no coordinate
        store: Store coordinate the distance is measured from

    Returns:
        dict with shipping_fee, distance_km (None on fallback) and source
        ("distance" or "default")
    """
    if coordinates is None:
        return {
            "shipping_fee": default_fee,
            "distance_km": None,
            "source": "default",
        }

    distance_km = calculate_distance_km(coordinates, store)
    return {
        "shipping_fee": fee_for_distance(distance_km),
        "distance_km": round(distance_km, 3),
        "source": "distance",
    }


def get_shipping_fee_for_address(
    district: str,
    ward: str,
    default_fee: Optional[float] = None
) -> Dict[str, Any]:
    """
    Shipping fee for a district/ward address, falling back to the default fee
    when the ward is not in the table.
    """
    if default_fee is None:
        default_fee = settings.DEFAULT_SHIPPING_FEE

    coordinates = resolve_coordinates(district, ward)
    if coordinates is None:
        logger.info(f"No coordinates for {district} / {ward}, using default shipping fee")

    result = calculate_shipping_fee(coordinates, default_fee)
    return {
        "district": district,
        "ward": ward,
        "shipping_fee": result["shipping_fee"],
        "distance_km": result["distance_km"],
        "coordinates_found": coordinates is not None,
    }
