# ============================================================================
# MODULE CONTEXT - GEOMETRY PRIMITIVES
# ============================================================================
# STATUS: Core Engine - leaf module, no engine imports
# PURPOSE: Point-in-polygon, point/segment/polyline/polygon distances, CRS normalization
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: GeometryKind, PointGeometry, MultiPointGeometry, PolylineGeometry, PolygonGeometry,
#          point_in_ring, point_in_polygon, haversine_miles, distance_point_to_segment,
#          distance_to_polyline_miles, distance_to_polygon_boundary_miles,
#          detect_and_normalize_crs, normalize_coordinate, parse_esri_geometry
# DEPENDENCIES: math, pyproj (non-Mercator projected systems only)
# PATTERNS: Pure functions over (lon, lat) tuples, frozen dataclasses
# ============================================================================

"""
Geometry Primitives.

All coordinates are ``(x, y)`` tuples in WGS84 degrees, i.e. ``(lon, lat)``,
matching the ESRI JSON ring/path order. Every distance is in statute miles
and is computed with the haversine formula; planar math is only used to find
the projection parameter along a segment, in a local frame scaled by
cos(latitude) so longitudes shrink correctly away from the equator.

Coordinate reference systems:
    ESRI responses are requested with outSR=4326, but some services ignore it
    and answer in Web Mercator or a projected system. When the response names
    its spatialReference we honour it (Web Mercator in closed form, anything
    else through pyproj). Without one, ``detect_and_normalize_crs`` falls back
    to a magnitude heuristic: |x| > 180 or |y| > 90 is treated as Web
    Mercator. The heuristic is best effort only - State Plane, British
    National Grid and other projected coordinates also exceed the WGS84 range
    and will be misread as Web Mercator.
"""

import math
from enum import Enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pyproj import Transformer
from pyproj.exceptions import CRSError

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.EVALUATOR, "GeometryPrimitives")

Coordinate = Tuple[float, float]

EARTH_RADIUS_MILES = 3959.0
WEB_MERCATOR_EXTENT = 20037508.34
METERS_PER_MILE = 1609.34

# Squared degrees below which a segment is treated as a single point
_DEGENERATE_SEGMENT_EPSILON = 1e-18

GEOGRAPHIC_WKIDS = frozenset({4326})
WEB_MERCATOR_WKIDS = frozenset({3857, 102100, 102113, 900913})


class MalformedGeometryError(ValueError):
    """Raised when an ESRI geometry cannot be interpreted."""


# ============================================================================
# GEOMETRY TYPES
# ============================================================================

class GeometryKind(str, Enum):
    """Geometry families served by ArcGIS feature layers."""
    POINT = "point"
    MULTIPOINT = "multipoint"
    POLYLINE = "polyline"
    POLYGON = "polygon"


@dataclass(frozen=True)
class PointGeometry:
    x: float
    y: float
    kind = GeometryKind.POINT

    @property
    def coordinate(self) -> Coordinate:
        return (self.x, self.y)


@dataclass(frozen=True)
class MultiPointGeometry:
    points: Tuple[Coordinate, ...]
    kind = GeometryKind.MULTIPOINT


@dataclass(frozen=True)
class PolylineGeometry:
    paths: Tuple[Tuple[Coordinate, ...], ...]
    kind = GeometryKind.POLYLINE


@dataclass(frozen=True)
class PolygonGeometry:
    """Polygon in ESRI ring convention: rings[0] is the outer boundary, the rest are holes."""
    rings: Tuple[Tuple[Coordinate, ...], ...]
    kind = GeometryKind.POLYGON


Geometry = Union[PointGeometry, MultiPointGeometry, PolylineGeometry, PolygonGeometry]


# ============================================================================
# CONTAINMENT
# ============================================================================

def point_in_ring(point: Coordinate, ring: Sequence[Sequence[float]]) -> bool:
    """
    Even-odd ray casting test of ``point`` against one closed ring.

    Edges with equal end latitudes (horizontal edges, duplicate vertices)
    never count as a crossing.
    """
    lon, lat = point
    n = len(ring)
    if n < 3:
        return False

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if yi != yj and (yi > lat) != (yj > lat):
            if lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
                inside = not inside
        j = i
    return inside


def point_in_polygon(point: Coordinate, rings: Sequence[Sequence[Sequence[float]]]) -> bool:
    """True when ``point`` is inside rings[0] and outside every hole in rings[1:]."""
    if not rings:
        return False
    if not point_in_ring(point, rings[0]):
        return False
    return not any(point_in_ring(point, hole) for hole in rings[1:])


# ============================================================================
# DISTANCE
# ============================================================================

def haversine_miles(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in miles between two (lon, lat) points."""
    lon1, lat1 = a
    lon2, lat2 = b
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    h = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def closest_point_on_segment(point: Coordinate, start: Coordinate, end: Coordinate) -> Coordinate:
    """
    Project ``point`` onto the line through ``start``-``end`` and clamp to the segment.

    Degenerate segments return ``start``.
    """
    px, py = point
    x1, y1 = start[0], start[1]
    x2, y2 = end[0], end[1]

    # Local equirectangular frame centred on the query point
    kx = math.cos(math.radians(py))
    dx = (x2 - x1) * kx
    dy = y2 - y1
    length_sq = dx * dx + dy * dy
    if length_sq < _DEGENERATE_SEGMENT_EPSILON:
        return (x1, y1)

    t = ((px - x1) * kx * dx + (py - y1) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return (x1 + t * (x2 - x1), y1 + t * (y2 - y1))


def distance_point_to_segment(point: Coordinate, start: Coordinate, end: Coordinate) -> float:
    """Haversine distance in miles from ``point`` to the closest point of a segment."""
    return haversine_miles(point, closest_point_on_segment(point, start, end))


def nearest_on_paths(
    point: Coordinate,
    paths: Sequence[Sequence[Sequence[float]]],
    closed: bool = False
) -> Tuple[Optional[Coordinate], float]:
    """
    Closest location on a set of vertex sequences and its distance in miles.

    Args:
        point: Query (lon, lat)
        paths: Polyline paths or polygon rings
        closed: Also test the edge from the last vertex back to the first

    Returns:
        (nearest coordinate, miles); (None, inf) when there are no vertices
    """
    best: Optional[Coordinate] = None
    best_distance = math.inf

    for path in paths:
        n = len(path)
        if n == 0:
            continue
        if n == 1:
            candidates = [(path[0][0], path[0][1])]
        else:
            candidates = [
                closest_point_on_segment(point, path[i], path[i + 1])
                for i in range(n - 1)
            ]
            if closed and (path[0][0], path[0][1]) != (path[-1][0], path[-1][1]):
                candidates.append(closest_point_on_segment(point, path[-1], path[0]))

        for candidate in candidates:
            distance = haversine_miles(point, candidate)
            if distance < best_distance:
                best, best_distance = candidate, distance

    return best, best_distance


def distance_to_polyline_miles(point: Coordinate, paths: Sequence[Sequence[Sequence[float]]]) -> float:
    """Minimum distance in miles to any segment of any path; +inf for no paths."""
    return nearest_on_paths(point, paths)[1]


def distance_to_polygon_boundary_miles(point: Coordinate, rings: Sequence[Sequence[Sequence[float]]]) -> float:
    """Minimum distance in miles to the outer ring or any hole boundary."""
    return nearest_on_paths(point, rings, closed=True)[1]


def nearest_of_points(point: Coordinate, points: Sequence[Coordinate]) -> Tuple[Optional[Coordinate], float]:
    """Closest member of ``points`` and its haversine distance."""
    best: Optional[Coordinate] = None
    best_distance = math.inf
    for candidate in points:
        distance = haversine_miles(point, candidate)
        if distance < best_distance:
            best, best_distance = candidate, distance
    return best, best_distance


# ============================================================================
# COORDINATE REFERENCE SYSTEMS
# ============================================================================

def web_mercator_to_wgs84(x: float, y: float) -> Coordinate:
    """Inverse spherical Web Mercator (EPSG:3857) to (lon, lat) degrees."""
    lon = x / WEB_MERCATOR_EXTENT * 180.0
    lat = 180.0 / math.pi * (2 * math.atan(math.exp(y / WEB_MERCATOR_EXTENT * math.pi)) - math.pi / 2)
    return (lon, lat)


def detect_and_normalize_crs(coord: Sequence[float]) -> Coordinate:
    """
    Best-effort CRS sniffing by magnitude.

    Coordinates outside the WGS84 range are assumed to be Web Mercator. This
    cannot tell Web Mercator apart from other projected systems; prefer
    ``normalize_coordinate`` with an explicit wkid whenever one is known.
    """
    x, y = coord[0], coord[1]
    if abs(x) > 180 or abs(y) > 90:
        return web_mercator_to_wgs84(x, y)
    return (x, y)


def resolve_wkid(spatial_reference: Optional[Dict[str, Any]]) -> Optional[int]:
    """Extract the well-known id from an ESRI spatialReference, preferring latestWkid."""
    if not isinstance(spatial_reference, dict):
        return None
    for key in ("latestWkid", "wkid"):
        value = spatial_reference.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


# Cache for pyproj transformers (source wkid -> transformer, None if unsupported)
_transformer_cache: Dict[int, Optional[Transformer]] = {}


def _get_transformer(wkid: int) -> Optional[Transformer]:
    """Transformer from ``wkid`` to EPSG:4326, trying the EPSG then ESRI authority."""
    if wkid not in _transformer_cache:
        transformer = None
        for authority in ("EPSG", "ESRI"):
            try:
                transformer = Transformer.from_crs(f"{authority}:{wkid}", "EPSG:4326", always_xy=True)
                break
            except CRSError:
                continue
        if transformer is None:
            logger.warning(
                f"Unknown spatial reference wkid={wkid}; falling back to magnitude heuristic",
                extra={'custom_dimensions': {'wkid': wkid}}
            )
        _transformer_cache[wkid] = transformer
    return _transformer_cache[wkid]


def normalize_coordinate(coord: Sequence[float], wkid: Optional[int] = None) -> Coordinate:
    """
    Convert one service coordinate to WGS84 (lon, lat).

    An explicit wkid wins; without one the magnitude heuristic is used.
    """
    x, y = float(coord[0]), float(coord[1])
    if wkid is None:
        return detect_and_normalize_crs((x, y))
    if wkid in GEOGRAPHIC_WKIDS:
        return (x, y)
    if wkid in WEB_MERCATOR_WKIDS:
        return web_mercator_to_wgs84(x, y)

    transformer = _get_transformer(wkid)
    if transformer is None:
        return detect_and_normalize_crs((x, y))
    lon, lat = transformer.transform(x, y)
    return (lon, lat)


# ============================================================================
# ESRI JSON PARSING
# ============================================================================

def _parse_coordinate(value: Any, wkid: Optional[int]) -> Coordinate:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        raise MalformedGeometryError(f"coordinate must be an [x, y] pair, got {value!r}")
    x, y = value[0], value[1]
    for component in (x, y):
        if isinstance(component, bool) or not isinstance(component, (int, float)):
            raise MalformedGeometryError(f"non-numeric coordinate {value!r}")
        if math.isnan(component) or math.isinf(component):
            raise MalformedGeometryError(f"non-finite coordinate {value!r}")
    return normalize_coordinate((x, y), wkid)


def _parse_parts(value: Any, name: str, wkid: Optional[int]) -> Tuple[Tuple[Coordinate, ...], ...]:
    if not isinstance(value, list):
        raise MalformedGeometryError(f"'{name}' must be a list")
    parts: List[Tuple[Coordinate, ...]] = []
    for part in value:
        if not isinstance(part, list):
            raise MalformedGeometryError(f"each entry of '{name}' must be a list of coordinates")
        if part:
            parts.append(tuple(_parse_coordinate(c, wkid) for c in part))
    if not parts:
        raise MalformedGeometryError(f"'{name}' contains no coordinates")
    return tuple(parts)


def parse_esri_geometry(raw: Any, spatial_reference: Optional[Dict[str, Any]] = None) -> Geometry:
    """
    Parse an ESRI JSON geometry into a normalized WGS84 geometry.

    Args:
        raw: The feature's ``geometry`` object
        spatial_reference: Response-level spatialReference, used when the
            geometry does not carry its own

    Raises:
        MalformedGeometryError: Missing coordinates or an unrecognised shape
    """
    if not isinstance(raw, dict) or not raw:
        raise MalformedGeometryError("geometry is missing")

    wkid = resolve_wkid(raw.get("spatialReference"))
    if wkid is None:
        wkid = resolve_wkid(spatial_reference)

    if "rings" in raw:
        return PolygonGeometry(rings=_parse_parts(raw["rings"], "rings", wkid))
    if "paths" in raw:
        return PolylineGeometry(paths=_parse_parts(raw["paths"], "paths", wkid))
    if "points" in raw:
        points = _parse_parts([raw["points"]], "points", wkid)[0]
        return MultiPointGeometry(points=points)
    if "x" in raw and "y" in raw:
        x, y = _parse_coordinate([raw["x"], raw["y"]], wkid)
        return PointGeometry(x=x, y=y)

    raise MalformedGeometryError(f"unrecognised geometry keys: {sorted(raw.keys())}")
