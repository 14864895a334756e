"""
Walking ETA estimation between a visitor and an attraction
"""
import math
import logging
from typing import Any, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from config.config import settings
from db.repositories import AttractionRepository
from errors import InvalidInputError, NotFoundError
from models import MAX_ID, EtaResponse

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6_371_000
DEFAULT_WALKING_SPEED_MPS = 1.4


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points in decimal degrees"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Float error can push a slightly past 1 near antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def estimate_walk_minutes(distance_meters: float, speed_mps: float = DEFAULT_WALKING_SPEED_MPS) -> int:
    """Walking time in whole minutes, never less than 1"""
    return max(1, round(distance_meters / (speed_mps * 60)))


def _to_number(value: Any) -> float:
    """Parse a JSON number or numeric string; NaN, infinities and booleans are rejected"""
    if isinstance(value, bool):
        raise ValueError("boolean is not a coordinate")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError("coordinate must be finite")
    return number


def validate_coordinates(latitude: Any, longitude: Any) -> Tuple[float, float]:
    """
    Validate visitor coordinates in a fixed order, each failure with its own message:
    presence, numeric, latitude range, longitude range.
    """
    if latitude is None or longitude is None:
        raise InvalidInputError("user_latitude and user_longitude are required.")

    try:
        lat = _to_number(latitude)
        lon = _to_number(longitude)
    except (TypeError, ValueError, OverflowError):
        raise InvalidInputError("Coordinates must be valid numbers.")

    if not -90 <= lat <= 90:
        raise InvalidInputError("Latitude must be between -90 and +90 degrees.")
    if not -180 <= lon <= 180:
        raise InvalidInputError("Longitude must be between -180 and +180 degrees.")

    return lat, lon


def validate_attraction_id(attraction_id: Any) -> int:
    """
    Parse a positive integer id without going through float.
    Ids past the key range cannot exist and are reported as not found.
    """
    if attraction_id is None or isinstance(attraction_id, bool):
        raise InvalidInputError("attraction_id is required.")
    if isinstance(attraction_id, float):
        if not attraction_id.is_integer():
            raise InvalidInputError("attraction_id is required.")
        number = int(attraction_id)
    else:
        try:
            number = int(attraction_id)
        except (TypeError, ValueError):
            raise InvalidInputError("attraction_id is required.")
    if number <= 0:
        raise InvalidInputError("attraction_id is required.")
    if number > MAX_ID:
        raise NotFoundError("Attraction")
    return number


async def estimate_eta(
    db: AsyncSession,
    user_latitude: Any,
    user_longitude: Any,
    attraction_id: Any
) -> EtaResponse:
    """
    Distance and walking time from the visitor to an attraction.
    All input checks run before the attraction lookup.
    """
    lat, lon = validate_coordinates(user_latitude, user_longitude)
    attraction_id = validate_attraction_id(attraction_id)

    attraction = await AttractionRepository(db).find(attraction_id)
    if attraction is None:
        raise NotFoundError("Attraction")

    distance = haversine_distance(lat, lon, attraction.latitude, attraction.longitude)
    minutes = estimate_walk_minutes(distance, settings.WALKING_SPEED_MPS)

    logger.debug(f"ETA to attraction {attraction_id}: {distance:.0f} m, {minutes} min")
    return EtaResponse(
        attraction_id=attraction.id,
        attraction_name=attraction.name,
        distance_meters=round(distance),
        distance_km=round(distance / 1000, 2),
        estimated_walk_time_minutes=minutes
    )
