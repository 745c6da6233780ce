from typing import Sequence, Tuple
import numpy as np

EARTH_RADIUS_KM = 6371.0

Point = Tuple[float, float]


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in km (haversine)."""
    return float(distances_from((lat1, lon1), [lat2], [lon2])[0])


def distances_from(center: Point, lats: Sequence[float], lons: Sequence[float]) -> np.ndarray:
    """Distance in km from ``center`` to every (lat, lon) pair.

    Non-finite coordinates are not rejected; they come out as NaN.
    """
    lat1, lon1 = np.radians(np.asarray(center, dtype=float))
    lat2 = np.radians(np.asarray(lats, dtype=float))
    lon2 = np.radians(np.asarray(lons, dtype=float))

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    # rounding can push a a hair past 1 for near-antipodal points
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def is_finite_point(point: Point) -> bool:
    return point is not None and bool(np.all(np.isfinite(np.asarray(point, dtype=float))))
