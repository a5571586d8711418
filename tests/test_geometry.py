"""Tests for the geometry primitives."""

import math
import random

import pytest

from spatial_query.geometry import (
    EARTH_RADIUS_MILES,
    WEB_MERCATOR_EXTENT,
    MalformedGeometryError,
    MultiPointGeometry,
    PointGeometry,
    PolygonGeometry,
    PolylineGeometry,
    closest_point_on_segment,
    detect_and_normalize_crs,
    distance_point_to_segment,
    distance_to_polygon_boundary_miles,
    distance_to_polyline_miles,
    haversine_miles,
    normalize_coordinate,
    parse_esri_geometry,
    point_in_polygon,
    point_in_ring,
    resolve_wkid,
    web_mercator_to_wgs84,
)

from tests.conftest import HOLE_RING, POLYLINE_PATH, SQUARE_RING

MILES_PER_DEGREE_LAT = EARTH_RADIUS_MILES * math.pi / 180


# =============================================================================
# Test: Ray Casting
# =============================================================================


class TestPointInRing:
    """Tests for the even-odd ray casting test."""

    def test_point_inside_square(self, square_ring):
        assert point_in_ring((-120.0, 38.0), square_ring)

    def test_point_outside_square(self, square_ring):
        assert not point_in_ring((-120.0, 40.0), square_ring)
        assert not point_in_ring((-122.0, 38.0), square_ring)

    def test_concave_ring_notch(self):
        """A U shape: the notch between the arms is outside."""
        ring = [(0, 0), (3, 0), (3, 3), (2, 3), (2, 1), (1, 1), (1, 3), (0, 3), (0, 0)]
        assert point_in_ring((0.5, 2.0), ring)
        assert point_in_ring((2.5, 2.0), ring)
        assert not point_in_ring((1.5, 2.0), ring)

    def test_degenerate_ring_does_not_crash(self):
        """Duplicate vertices and horizontal edges are skipped."""
        ring = [(0, 0), (0, 0), (2, 0), (2, 0), (2, 2), (0, 2), (0, 0)]
        assert point_in_ring((1.0, 1.0), ring)
        assert not point_in_ring((1.0, 3.0), ring)

    def test_too_few_vertices(self):
        assert not point_in_ring((0, 0), [(0, 0), (1, 1)])
        assert not point_in_ring((0, 0), [])

    def test_unclosed_ring_is_treated_as_closed(self):
        ring = [(-121, 37), (-119, 37), (-119, 39), (-121, 39)]
        assert point_in_ring((-120.0, 38.0), ring)


class TestPointInPolygon:
    """Tests for containment with holes."""

    def test_inside_outer_ring(self):
        assert point_in_polygon((-120.0, 38.0), [SQUARE_RING])

    def test_point_in_hole_is_not_contained(self):
        assert not point_in_polygon((-120.0, 38.0), [SQUARE_RING, HOLE_RING])

    def test_point_between_hole_and_outer_ring(self):
        assert point_in_polygon((-120.8, 38.0), [SQUARE_RING, HOLE_RING])

    def test_empty_rings(self):
        assert not point_in_polygon((-120.0, 38.0), [])

    @pytest.mark.parametrize("lon,lat,expected", [
        (0.5, 0.5, True),
        (0.9, 0.1, True),
        (1.5, 0.5, False),
        (-0.1, 0.5, False),
        (0.5, 1.01, False),
    ])
    def test_unit_square(self, lon, lat, expected):
        ring = [(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)]
        assert point_in_polygon((lon, lat), [ring]) is expected


def _random_convex_ring(rng):
    """Vertices on a circle in counter-clockwise order, closed."""
    cx, cy = rng.uniform(-170, 170), rng.uniform(-80, 80)
    radius = rng.uniform(0.01, 5.0)
    angles = sorted(rng.uniform(0, 2 * math.pi) for _ in range(rng.randint(3, 12)))
    ring = [(cx + radius * math.cos(a), cy + radius * math.sin(a)) for a in angles]
    return ring + [ring[0]], (cx, cy, radius)


def _half_plane_margin(point, ring):
    """Smallest signed cross product over the edges; > 0 means strictly inside a CCW convex ring."""
    px, py = point
    return min(
        (bx - ax) * (py - ay) - (by - ay) * (px - ax)
        for (ax, ay), (bx, by) in zip(ring, ring[1:])
    )


class TestConvexPolygonsAgainstHalfPlanes:
    """Ray casting agrees with a half-plane test on generated convex polygons."""

    @pytest.mark.parametrize("seed", range(20))
    def test_matches_half_plane_reference(self, seed):
        rng = random.Random(seed)
        ring, (cx, cy, radius) = _random_convex_ring(rng)
        edge_scale = radius * radius * 1e-9
        checked = 0

        for _ in range(200):
            point = (cx + rng.uniform(-1.5, 1.5) * radius, cy + rng.uniform(-1.5, 1.5) * radius)
            margin = _half_plane_margin(point, ring)
            if abs(margin) < edge_scale:
                continue
            checked += 1
            assert point_in_polygon(point, [ring]) is (margin > 0), (seed, point)

        assert checked > 150

    @pytest.mark.parametrize("seed", range(5))
    def test_vertex_centroid_is_inside(self, seed):
        rng = random.Random(1000 + seed)
        ring, _ = _random_convex_ring(rng)
        vertices = ring[:-1]
        centroid = (
            sum(x for x, _ in vertices) / len(vertices),
            sum(y for _, y in vertices) / len(vertices),
        )
        assert _half_plane_margin(centroid, ring) > 0
        assert point_in_polygon(centroid, [ring])


# =============================================================================
# Test: Distances
# =============================================================================


class TestHaversine:
    """Tests for great-circle distance."""

    def test_zero_distance(self):
        assert haversine_miles((-120.0, 38.0), (-120.0, 38.0)) == 0.0

    def test_one_degree_of_latitude(self):
        assert haversine_miles((-120.0, 39.0), (-120.0, 40.0)) == pytest.approx(MILES_PER_DEGREE_LAT, rel=1e-9)

    def test_longitude_shrinks_with_latitude(self):
        equator = haversine_miles((0.0, 0.0), (1.0, 0.0))
        north = haversine_miles((0.0, 60.0), (1.0, 60.0))
        assert north == pytest.approx(equator / 2, rel=1e-3)

    def test_antipodes(self):
        assert haversine_miles((0.0, 0.0), (180.0, 0.0)) == pytest.approx(EARTH_RADIUS_MILES * math.pi)


class TestSegmentDistance:
    """Tests for point to segment distance."""

    def test_projection_inside_segment(self):
        closest = closest_point_on_segment((-120.0, 40.0), (-119.0, 39.0), (-121.0, 39.0))
        assert closest == pytest.approx((-120.0, 39.0))

    def test_projection_clamped_to_endpoint(self):
        closest = closest_point_on_segment((-118.0, 39.0), (-121.0, 39.0), (-119.0, 39.0))
        assert closest == pytest.approx((-119.0, 39.0))

    def test_degenerate_segment(self):
        miles = distance_point_to_segment((-120.0, 40.0), (-120.0, 39.0), (-120.0, 39.0))
        assert miles == pytest.approx(MILES_PER_DEGREE_LAT, rel=1e-9)

    def test_point_on_segment_is_zero(self):
        assert distance_point_to_segment((-119.5, 38.0), (-120.0, 38.0), (-119.0, 38.0)) == pytest.approx(0.0, abs=1e-9)


class TestPolylineDistance:
    """Tests for polyline minimum distance."""

    def test_point_on_polyline_is_zero(self):
        assert distance_to_polyline_miles((-119.5, 38.0), [POLYLINE_PATH]) == pytest.approx(0.0, abs=1e-9)

    def test_point_on_vertex_is_zero(self):
        assert distance_to_polyline_miles((-119.0, 38.0), [POLYLINE_PATH]) == pytest.approx(0.0, abs=1e-9)

    def test_minimum_over_paths(self):
        far = [[-100.0, 38.0], [-99.0, 38.0]]
        near = [[-120.0, 38.5], [-119.0, 38.5]]
        miles = distance_to_polyline_miles((-119.5, 38.0), [far, near])
        assert miles == pytest.approx(MILES_PER_DEGREE_LAT / 2, rel=1e-3)

    def test_empty_paths_is_infinite(self):
        assert distance_to_polyline_miles((0.0, 0.0), []) == math.inf
        assert distance_to_polyline_miles((0.0, 0.0), [[]]) == math.inf


class TestPolygonBoundaryDistance:
    """Tests for polygon boundary distance."""

    def test_outside_point_nearest_edge(self):
        miles = distance_to_polygon_boundary_miles((-120.0, 40.0), [SQUARE_RING])
        assert miles == pytest.approx(MILES_PER_DEGREE_LAT, rel=1e-6)

    def test_hole_boundary_counts(self):
        """Inside a hole the nearest boundary is the hole's."""
        miles = distance_to_polygon_boundary_miles((-120.0, 38.0), [SQUARE_RING, HOLE_RING])
        expected = 0.5 * MILES_PER_DEGREE_LAT * math.cos(math.radians(38.0))
        assert miles == pytest.approx(expected, rel=1e-2)

    def test_unclosed_ring_closing_edge(self):
        ring = [[-121, 37], [-119, 37], [-119, 39], [-121, 39]]
        miles = distance_to_polygon_boundary_miles((-122.0, 38.0), [ring])
        assert miles < 60


# =============================================================================
# Test: Coordinate Reference Systems
# =============================================================================


def _to_web_mercator(lon, lat):
    radius = WEB_MERCATOR_EXTENT / math.pi
    return (
        math.radians(lon) * radius,
        radius * math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))
    )


class TestCRS:
    """Tests for CRS detection and reprojection."""

    def test_web_mercator_origin(self):
        assert web_mercator_to_wgs84(0.0, 0.0) == pytest.approx((0.0, 0.0))

    def test_web_mercator_extent_is_antimeridian(self):
        lon, _ = web_mercator_to_wgs84(WEB_MERCATOR_EXTENT, 0.0)
        assert lon == pytest.approx(180.0)

    def test_heuristic_converts_large_coordinates(self):
        x, y = _to_web_mercator(-120.0, 38.0)
        lon, lat = detect_and_normalize_crs((x, y))
        assert lon == pytest.approx(-120.0, abs=1e-6)
        assert lat == pytest.approx(38.0, abs=1e-6)

    def test_heuristic_keeps_wgs84(self):
        assert detect_and_normalize_crs((-120.0, 38.0)) == (-120.0, 38.0)

    def test_resolve_wkid_prefers_latest(self):
        assert resolve_wkid({"wkid": 102100, "latestWkid": 3857}) == 3857
        assert resolve_wkid({"wkid": 4326}) == 4326
        assert resolve_wkid({"wkt": "..."}) is None
        assert resolve_wkid(None) is None

    def test_explicit_geographic_is_untouched(self):
        assert normalize_coordinate((-120.0, 38.0), 4326) == (-120.0, 38.0)

    def test_explicit_projected_uses_pyproj(self):
        """UTM zone 11N easting 500000 lies on the -117 central meridian."""
        lon, lat = normalize_coordinate((500000.0, 4200000.0), 32611)
        assert lon == pytest.approx(-117.0, abs=1e-6)
        assert 37.8 < lat < 38.1

    def test_unknown_wkid_falls_back_to_heuristic(self):
        assert normalize_coordinate((-120.0, 38.0), 999999) == (-120.0, 38.0)


# =============================================================================
# Test: ESRI JSON Parsing
# =============================================================================


class TestParseEsriGeometry:
    """Tests for ESRI JSON geometry parsing."""

    def test_point(self):
        geometry = parse_esri_geometry({"x": -120.0, "y": 38.0})
        assert isinstance(geometry, PointGeometry)
        assert geometry.coordinate == (-120.0, 38.0)

    def test_multipoint(self):
        geometry = parse_esri_geometry({"points": [[-120.0, 38.0], [-119.0, 38.0]]})
        assert isinstance(geometry, MultiPointGeometry)
        assert len(geometry.points) == 2

    def test_polyline(self, polyline_geometry):
        geometry = parse_esri_geometry(polyline_geometry)
        assert isinstance(geometry, PolylineGeometry)
        assert geometry.paths[0][0] == (-120.0, 38.0)

    def test_polygon_with_hole(self, holed_square_geometry):
        geometry = parse_esri_geometry(holed_square_geometry)
        assert isinstance(geometry, PolygonGeometry)
        assert len(geometry.rings) == 2

    def test_geometry_spatial_reference_wins(self):
        x, y = _to_web_mercator(-120.0, 38.0)
        geometry = parse_esri_geometry(
            {"x": x, "y": y, "spatialReference": {"wkid": 102100, "latestWkid": 3857}},
            spatial_reference={"wkid": 4326}
        )
        assert geometry.x == pytest.approx(-120.0, abs=1e-6)
        assert geometry.y == pytest.approx(38.0, abs=1e-6)

    def test_response_spatial_reference_applies(self):
        x, y = _to_web_mercator(10.0, 5.0)
        geometry = parse_esri_geometry({"x": x, "y": y}, spatial_reference={"wkid": 3857})
        assert geometry.coordinate == pytest.approx((10.0, 5.0))

    @pytest.mark.parametrize("raw", [
        None,
        {},
        {"rings": []},
        {"rings": [[]]},
        {"paths": "not-a-list"},
        {"x": None, "y": 38.0},
        {"x": "NaN", "y": 38.0},
        {"x": float("nan"), "y": 38.0},
        {"rings": [[[-120.0]]]},
        {"curveRings": [[[0, 0]]]},
    ])
    def test_malformed(self, raw):
        with pytest.raises(MalformedGeometryError):
            parse_esri_geometry(raw)

    def test_malformed_is_value_error(self):
        assert issubclass(MalformedGeometryError, ValueError)
