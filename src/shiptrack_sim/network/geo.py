"""
Great-circle distance on a spherical Earth (haversine).

This is the only metric used for progress and arrival decisions. Coordinate
space (degrees) is used for choosing the stepping direction only.
"""

import math
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from shiptrack_sim.network.core import Coordinate

EARTH_RADIUS_KM = 6371.0

# Rough length of one degree of arc, used to turn km/h into degrees per tick
KM_PER_DEGREE = 111.0


def haversine_km(a: "Coordinate", b: "Coordinate") -> float:
    """Return the great-circle distance in km between two coordinates."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    )
    # Float noise can push h a hair above 1 for antipodal points
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_km_many(
    lat1: np.ndarray, lng1: np.ndarray, lat2: np.ndarray, lng2: np.ndarray
) -> np.ndarray:
    """
    Vectorised haversine over equally-shaped arrays of degrees.

    Returns an array of distances in km with the same shape as the inputs.
    """
    lat1_r = np.radians(np.asarray(lat1, dtype=np.float64))
    lat2_r = np.radians(np.asarray(lat2, dtype=np.float64))
    dlat = lat2_r - lat1_r
    dlng = np.radians(
        np.asarray(lng2, dtype=np.float64) - np.asarray(lng1, dtype=np.float64)
    )

    h = np.sin(dlat / 2) ** 2 + np.cos(lat1_r) * np.cos(lat2_r) * np.sin(dlng / 2) ** 2
    h = np.minimum(h, 1.0)
    return 2 * EARTH_RADIUS_KM * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def normalize_longitude_delta(delta: float) -> float:
    """Fold a longitude difference into (-180, 180] (the shorter way round)."""
    folded = (delta + 180.0) % 360.0 - 180.0
    if folded == -180.0:
        return 180.0
    return folded


def wrap_longitude(longitude: float) -> float:
    """Wrap a longitude back into [-180, 180]."""
    if -180.0 <= longitude <= 180.0:
        return longitude
    return (longitude + 180.0) % 360.0 - 180.0
