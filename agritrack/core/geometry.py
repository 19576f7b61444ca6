"""Geometry kernel for field polygons and GPS positions.

All functions work on WGS84 ``GeoPoint`` sequences. Planar computations use a
local equirectangular projection centered on the ring's mean latitude, which is
accurate to a few centimeters for field-sized polygons.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from loguru import logger

from agritrack.core.models import GeoPoint

EARTH_RADIUS_M = 6_371_000.0
LAT_SCALE_M = 111_132.0
LNG_SCALE_EQUATOR_M = 111_319.0
MIN_SPLIT_AREA_HA = 0.0001
_SIDE_EPS = 1e-9


def distance_meters(p1: GeoPoint, p2: GeoPoint) -> float:
    """Compute Haversine distance in meters between two positions.

    Parameters
    ----------
    p1, p2 : GeoPoint
        Positions in decimal degrees.

    Returns
    -------
    float
        Great-circle distance in meters.

    Examples
    --------
    >>> distance_meters(GeoPoint(47.0, 14.0), GeoPoint(47.0, 14.0))
    0.0
    """
    phi1 = math.radians(p1.lat)
    phi2 = math.radians(p2.lat)
    d_phi = math.radians(p2.lat - p1.lat)
    d_lambda = math.radians(p2.lng - p1.lng)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def point_in_polygon(point: GeoPoint, ring: Sequence[GeoPoint]) -> bool:
    """Test whether a point lies inside a boundary ring (even-odd rule).

    The ring is treated as closed; the last vertex connects to the first.
    Points exactly on an edge may be reported either way.

    Parameters
    ----------
    point : GeoPoint
        Position to test.
    ring : Sequence[GeoPoint]
        Boundary vertices.

    Returns
    -------
    bool
        ``True`` when inside, ``False`` when outside or when the ring has
        fewer than three vertices.
    """
    count = len(ring)
    if count < 3:
        return False
    inside = False
    j = count - 1
    for i in range(count):
        xi, yi = ring[i].lat, ring[i].lng
        xj, yj = ring[j].lat, ring[j].lng
        if (yi > point.lng) != (yj > point.lng):
            cross_x = (xj - xi) * (point.lng - yi) / (yj - yi) + xi
            if point.lat < cross_x:
                inside = not inside
        j = i
    return inside


def _mean_lat(ring: Sequence[GeoPoint]) -> float:
    return float(np.mean([p.lat for p in ring]))


def _project(ring: Sequence[GeoPoint], center_lat: float) -> np.ndarray:
    """Project positions to planar meters, shape ``(N, 2)`` as ``(x, y)``."""
    lng_scale = LNG_SCALE_EQUATOR_M * math.cos(math.radians(center_lat))
    coords = np.asarray([(p.lng, p.lat) for p in ring], dtype=np.float64).reshape(-1, 2)
    return coords * np.asarray([lng_scale, LAT_SCALE_M], dtype=np.float64)


def _unproject(points_xy: Sequence[np.ndarray], center_lat: float) -> list[GeoPoint]:
    lng_scale = LNG_SCALE_EQUATOR_M * math.cos(math.radians(center_lat))
    return [GeoPoint(lat=float(p[1] / LAT_SCALE_M), lng=float(p[0] / lng_scale)) for p in points_xy]


def _shoelace_m2(points_xy: np.ndarray) -> float:
    centered = points_xy - points_xy.mean(axis=0)
    x = centered[:, 0]
    y = centered[:, 1]
    double_area = np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)
    return abs(float(double_area)) / 2.0


def polygon_area_ha(ring: Sequence[GeoPoint]) -> float:
    """Compute polygon area in hectares with a projected shoelace formula.

    Parameters
    ----------
    ring : Sequence[GeoPoint]
        Boundary vertices, implicitly closed.

    Returns
    -------
    float
        Area in hectares, ``0.0`` for fewer than three vertices.

    Examples
    --------
    >>> polygon_area_ha([GeoPoint(0.0, 0.0), GeoPoint(1.0, 1.0)])
    0.0
    """
    if len(ring) < 3:
        return 0.0
    points_xy = _project(ring, _mean_lat(ring))
    return _shoelace_m2(points_xy) / 10_000.0


def _cross(a: np.ndarray, b: np.ndarray, p: np.ndarray) -> float:
    """Signed side of ``p`` relative to line ``a -> b`` (>0 left, <0 right)."""
    return float((b[0] - a[0]) * (p[1] - a[1]) - (b[1] - a[1]) * (p[0] - a[0]))


def _line_segment_intersection(
    a: np.ndarray,
    b: np.ndarray,
    p: np.ndarray,
    q: np.ndarray,
) -> np.ndarray | None:
    """Intersect infinite line ``a-b`` with segment ``p-q``."""
    denom = (b[0] - a[0]) * (q[1] - p[1]) - (b[1] - a[1]) * (q[0] - p[0])
    if abs(denom) < _SIDE_EPS:
        return None
    u = ((p[0] - a[0]) * (b[1] - a[1]) - (p[1] - a[1]) * (b[0] - a[0])) / denom
    if 0.0 <= u <= 1.0:
        return p + u * (q - p)
    return None


def split_polygon(
    ring: Sequence[GeoPoint],
    cutter_points: Sequence[GeoPoint],
) -> tuple[list[GeoPoint], list[GeoPoint]] | None:
    """Split a ring into two rings along a cutting line.

    Only the first and the last cutter point are used; the cut is the infinite
    line through them. Vertices are classified by side and intersection points
    are inserted where consecutive vertices change side.

    Parameters
    ----------
    ring : Sequence[GeoPoint]
        Boundary to split. Works reliably for convex-ish rings.
    cutter_points : Sequence[GeoPoint]
        User-drawn cut line, at least two distinct points.

    Returns
    -------
    tuple[list[GeoPoint], list[GeoPoint]] | None
        ``(left_ring, right_ring)``, or ``None`` when the split is degenerate
        (line misses the ring, a part has fewer than three vertices or an area
        below 1 m²).
    """
    if len(ring) < 3 or len(cutter_points) < 2:
        return None
    start = cutter_points[0]
    end = cutter_points[-1]
    if start == end:
        return None

    center_lat = _mean_lat(ring)
    poly_xy = _project(ring, center_lat)
    line_xy = _project([start, end], center_lat)
    line_a, line_b = line_xy[0], line_xy[1]

    left: list[np.ndarray] = []
    right: list[np.ndarray] = []
    count = poly_xy.shape[0]
    for index in range(count):
        curr = poly_xy[index]
        nxt = poly_xy[(index + 1) % count]
        side_curr = _cross(line_a, line_b, curr)
        side_next = _cross(line_a, line_b, nxt)

        if side_curr >= -_SIDE_EPS:
            left.append(curr)
        if side_curr <= _SIDE_EPS:
            right.append(curr)

        crosses = (side_curr > _SIDE_EPS and side_next < -_SIDE_EPS) or (
            side_curr < -_SIDE_EPS and side_next > _SIDE_EPS
        )
        if crosses:
            hit = _line_segment_intersection(line_a, line_b, curr, nxt)
            if hit is not None:
                left.append(hit)
                right.append(hit)

    if len(left) < 3 or len(right) < 3:
        return None

    left_ring = _unproject(left, center_lat)
    right_ring = _unproject(right, center_lat)
    if polygon_area_ha(left_ring) < MIN_SPLIT_AREA_HA or polygon_area_ha(right_ring) < MIN_SPLIT_AREA_HA:
        logger.warning("Split aborted: resulting part smaller than 1 m²")
        return None
    return left_ring, right_ring


def offset_ring(ring: Sequence[GeoPoint], north_m: float, east_m: float) -> list[GeoPoint]:
    """Shift every vertex by a metric north/east offset.

    Parameters
    ----------
    ring : Sequence[GeoPoint]
        Boundary vertices.
    north_m, east_m : float
        Offset in meters; negative values move south / west.

    Returns
    -------
    list[GeoPoint]
        Shifted vertices, empty for empty input.
    """
    if not ring:
        return []
    lng_scale = LNG_SCALE_EQUATOR_M * math.cos(math.radians(_mean_lat(ring)))
    d_lat = north_m / LAT_SCALE_M
    d_lng = east_m / lng_scale
    return [GeoPoint(lat=p.lat + d_lat, lng=p.lng + d_lng) for p in ring]


def ring_centroid(ring: Sequence[GeoPoint]) -> GeoPoint | None:
    """Return the vertex mean of a ring, or ``None`` when empty."""
    if not ring:
        return None
    coords = np.asarray([(p.lat, p.lng) for p in ring], dtype=np.float64)
    center = coords.mean(axis=0)
    return GeoPoint(lat=float(center[0]), lng=float(center[1]))
