"""Planar lat/lon geometry helpers.

Coordinates are ``(lat, lon)`` tuples. Hull and area computations treat lon as
x and lat as y; no projection is applied.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from geoapi_pt.common.errors import InsufficientDataError, MalformedBoundaryError
from geoapi_pt.common.models import BBox, Coordinate, PolygonPart, RegionBoundary, Ring

EPSILON = 1e-12
# Minimum sine of the turn angle for a hull vertex to count as a corner.
COLLINEAR_TOLERANCE = 1e-9


def _cross(o: Coordinate, a: Coordinate, b: Coordinate) -> float:
    return (a[1] - o[1]) * (b[0] - o[0]) - (a[0] - o[0]) * (b[1] - o[1])


def _is_left_turn(o: Coordinate, a: Coordinate, b: Coordinate) -> bool:
    scale = math.hypot(a[0] - o[0], a[1] - o[1]) * math.hypot(b[0] - o[0], b[1] - o[1])
    return _cross(o, a, b) > COLLINEAR_TOLERANCE * scale


def mean_coordinate(coords: Sequence[Coordinate]) -> Coordinate:
    if not coords:
        raise InsufficientDataError("Cannot compute a mean over an empty point set")
    lat = sum(c[0] for c in coords) / len(coords)
    lon = sum(c[1] for c in coords) / len(coords)
    return lat, lon


def weighted_mean_coordinate(coords: Sequence[Coordinate], weights: Sequence[float]) -> Coordinate:
    if not coords:
        raise InsufficientDataError("Cannot compute a weighted mean over an empty point set")
    if len(coords) != len(weights):
        raise ValueError("coords and weights must have the same length")
    total = float(sum(weights))
    if total <= 0:
        raise ValueError("weights must sum to a positive value")
    lat = sum(c[0] * w for c, w in zip(coords, weights)) / total
    lon = sum(c[1] * w for c, w in zip(coords, weights)) / total
    return lat, lon


def bbox_of(coords: Iterable[Coordinate]) -> BBox:
    lats: list[float] = []
    lons: list[float] = []
    for lat, lon in coords:
        lats.append(lat)
        lons.append(lon)
    if not lats:
        raise InsufficientDataError("Cannot compute a bounding box over an empty point set")
    return BBox(min_lat=min(lats), min_lon=min(lons), max_lat=max(lats), max_lon=max(lons))


def boundary_bbox(boundary: RegionBoundary) -> BBox:
    return bbox_of(vertex for part in boundary for vertex in part.outer)


def convex_hull(coords: Iterable[Coordinate]) -> Ring | None:
    """Convex hull as a closed counter-clockwise ring, or None when degenerate.

    Uses Andrew's monotone chain. Collinear points on hull edges are dropped,
    so a result always has at least 3 distinct vertices.
    """
    points = sorted(set(coords), key=lambda c: (c[1], c[0]))
    if len(points) < 3:
        return None

    lower: list[Coordinate] = []
    for point in points:
        while len(lower) >= 2 and not _is_left_turn(lower[-2], lower[-1], point):
            lower.pop()
        lower.append(point)

    upper: list[Coordinate] = []
    for point in reversed(points):
        while len(upper) >= 2 and not _is_left_turn(upper[-2], upper[-1], point):
            upper.pop()
        upper.append(point)

    hull = lower[:-1] + upper[:-1]
    if len(hull) < 3:
        return None
    return tuple(hull) + (hull[0],)


def ring_signed_area(ring: Sequence[Coordinate]) -> float:
    area = 0.0
    for (lat1, lon1), (lat2, lon2) in zip(ring, ring[1:]):
        area += lon1 * lat2 - lon2 * lat1
    return area / 2.0


def ring_area_centroid(ring: Sequence[Coordinate]) -> Coordinate:
    """Area-weighted centroid of a closed ring (shoelace formula)."""
    area = ring_signed_area(ring)
    if abs(area) < EPSILON:
        return mean_coordinate(list(dict.fromkeys(ring)))

    c_lat = 0.0
    c_lon = 0.0
    for (lat1, lon1), (lat2, lon2) in zip(ring, ring[1:]):
        factor = lon1 * lat2 - lon2 * lat1
        c_lon += (lon1 + lon2) * factor
        c_lat += (lat1 + lat2) * factor
    return c_lat / (6.0 * area), c_lon / (6.0 * area)


def point_on_segment(lat: float, lon: float, a: Coordinate, b: Coordinate) -> bool:
    if abs(_cross(a, b, (lat, lon))) > EPSILON * max(1.0, abs(lat), abs(lon)):
        return False
    return (
        min(a[0], b[0]) - EPSILON <= lat <= max(a[0], b[0]) + EPSILON
        and min(a[1], b[1]) - EPSILON <= lon <= max(a[1], b[1]) + EPSILON
    )


def point_on_ring(lat: float, lon: float, ring: Sequence[Coordinate]) -> bool:
    return any(point_on_segment(lat, lon, a, b) for a, b in zip(ring, ring[1:]))


def point_in_ring(lat: float, lon: float, ring: Sequence[Coordinate], *, include_boundary: bool = True) -> bool:
    """Crossing-number test of a point against a closed ring."""
    if point_on_ring(lat, lon, ring):
        return include_boundary

    inside = False
    for (lat_i, lon_i), (lat_j, lon_j) in zip(ring, ring[1:]):
        if (lat_i > lat) != (lat_j > lat):
            crossing_lon = (lon_j - lon_i) * (lat - lat_i) / (lat_j - lat_i) + lon_i
            if lon < crossing_lon:
                inside = not inside
    return inside


def part_contains(part: PolygonPart, lat: float, lon: float) -> bool:
    if not point_in_ring(lat, lon, part.outer, include_boundary=True):
        return False
    # A point on a hole's edge is on the region's own border, so it stays inside.
    return not any(point_in_ring(lat, lon, hole, include_boundary=False) for hole in part.holes)


def boundary_contains(boundary: RegionBoundary, lat: float, lon: float) -> bool:
    return any(part_contains(part, lat, lon) for part in boundary)


def validate_ring(ring: Sequence[Coordinate], *, context: str = "ring") -> None:
    if len(ring) < 4:
        raise MalformedBoundaryError(f"{context}: ring has {len(ring)} vertices, at least 4 required")
    if tuple(ring[0]) != tuple(ring[-1]):
        raise MalformedBoundaryError(f"{context}: ring is not closed")
    if len(set(ring)) < 3:
        raise MalformedBoundaryError(f"{context}: ring has fewer than 3 distinct vertices")
