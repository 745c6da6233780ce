"""Proximity search and ranking over safehouse rows.

Rows come in already fetched (see ``criseo.storage``); nothing here touches
the database, so the same functions rank SQL rows and in-memory fixtures.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence
import math

import numpy as np

from .geo import Point, calculate_distance, distances_from, is_finite_point
from ..models.schemas import Rating, Safehouse, SafehouseWithRatings


@dataclass(frozen=True)
class ResourceFilter:
    type: Optional[str] = None
    status: Optional[str] = None
    services: FrozenSet[str] = frozenset()
    center: Optional[Point] = None
    radius: Optional[float] = None

    @property
    def distance_active(self) -> bool:
        """Radius applies only with a finite center and a real radius."""
        if self.center is None or self.radius is None:
            return False
        return is_finite_point(self.center) and not math.isnan(self.radius)

    def matches(self, resource: Safehouse) -> bool:
        if self.type and resource.type != self.type:
            return False
        if self.status and resource.status != self.status:
            return False
        if self.services and not self.services.intersection(resource.services or ()):
            return False
        if self.distance_active:
            distance = calculate_distance(
                self.center[0], self.center[1], resource.latitude, resource.longitude
            )
            # NaN compares False, so unlocatable rows drop out here
            if not distance <= self.radius:
                return False
        return True


def build_filter(
    type: Optional[str] = None,
    status: Optional[str] = None,
    services: Optional[Iterable[str]] = None,
    center: Optional[Point] = None,
    radius: Optional[float] = None,
) -> ResourceFilter:
    """Turn optional query options into a ResourceFilter.

    Missing options impose no constraint; a radius without a center is kept
    but never applied.
    """
    tags = frozenset(s for s in (services or ()) if s)
    return ResourceFilter(
        type=type or None,
        status=status or None,
        services=tags,
        center=tuple(center) if center is not None else None,
        radius=float(radius) if radius is not None else None,
    )


def average_rating(ratings: Sequence[Rating]) -> float:
    if not ratings:
        return 0.0
    return sum(r.rating for r in ratings) / len(ratings)


def _to_aware_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC timezone-aware"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def ranked_search(
    resources: Sequence[Safehouse],
    ratings_by_resource: Dict[str, List[Rating]],
    resource_filter: Optional[ResourceFilter] = None,
    center: Optional[Point] = None,
) -> List[SafehouseWithRatings]:
    """Filter resources, attach ratings, and order the matches.

    With a center (explicit, or taken from the filter) results are nearest
    first and carry their distance; NaN distances go last. Without one they
    are ordered by ``last_updated``, newest first. Both orderings are stable.
    Average ratings are recomputed from ``ratings_by_resource`` every call.
    """
    resource_filter = resource_filter or ResourceFilter()
    if center is None:
        center = resource_filter.center

    matched = [r for r in resources if resource_filter.matches(r)]
    if not matched:
        return []

    results = []
    for resource in matched:
        ratings = ratings_by_resource.get(resource.id, [])
        results.append(
            SafehouseWithRatings(
                **resource.model_dump(include=set(Safehouse.model_fields)),
                ratings=ratings,
                average_rating=average_rating(ratings),
            )
        )

    if center is None:
        return sorted(results, key=lambda r: _to_aware_utc(r.last_updated), reverse=True)

    distances = distances_from(
        center,
        [r.latitude for r in results],
        [r.longitude for r in results],
    )
    order = sorted(
        range(len(results)),
        key=lambda i: (bool(np.isnan(distances[i])), 0.0 if np.isnan(distances[i]) else distances[i]),
    )
    ranked = []
    for i in order:
        d = float(distances[i])
        results[i].distance = None if math.isnan(d) else d
        ranked.append(results[i])
    return ranked
