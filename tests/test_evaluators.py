"""Tests for the containment and distance evaluators."""

import math

import pytest

from spatial_query.evaluators import ContainmentEvaluator, DistanceEvaluator
from spatial_query.geometry import EARTH_RADIUS_MILES, parse_esri_geometry
from spatial_query.models import QueryPoint, RawFeature

MILES_PER_DEGREE_LAT = EARTH_RADIUS_MILES * math.pi / 180


# =============================================================================
# Test: Containment
# =============================================================================


class TestContainmentEvaluator:
    """Tests for the client-side containment re-check."""

    def test_contains(self, inside_point, square_geometry):
        raw = RawFeature(attributes={"OBJECTID": 1}, geometry=square_geometry)
        assert ContainmentEvaluator().evaluate(inside_point, raw)

    def test_hole_is_not_contained(self, inside_point, holed_square_geometry):
        raw = RawFeature(attributes={"OBJECTID": 1}, geometry=holed_square_geometry)
        assert not ContainmentEvaluator().evaluate(inside_point, raw)

    def test_non_polygon_is_never_containing(self, inside_point):
        raw = RawFeature(attributes={}, geometry={"x": -120.0, "y": 38.0})
        assert not ContainmentEvaluator().evaluate(inside_point, raw)

    def test_rejects_server_side_false_positive(self, polygon_layer, outside_point, square_geometry):
        """The service said 'intersects' but the point is outside the ring."""
        raw = RawFeature(attributes={"OBJECTID": 1}, geometry=square_geometry)
        assert ContainmentEvaluator().evaluate_pass(outside_point, polygon_layer, [raw]) == []

    def test_pass_builds_containing_records(self, polygon_layer, inside_point, square_geometry):
        raw = RawFeature(attributes={"OBJECTID": 9, "NAME": "Square"}, geometry=square_geometry)

        [evaluated] = ContainmentEvaluator().evaluate_pass(inside_point, polygon_layer, [raw])

        assert evaluated.id == "9"
        assert evaluated.is_containing
        assert evaluated.distance_miles == 0.0
        assert evaluated.properties == {"name": "Square"}
        assert evaluated.nearest_point == (-120.0, 38.0)

    def test_pass_skips_bad_geometry(self, polygon_layer, inside_point, square_geometry):
        features = [
            RawFeature(attributes={"OBJECTID": 1}, geometry=None),
            RawFeature(attributes={"OBJECTID": 2}, geometry={"rings": "broken"}),
            RawFeature(attributes={"OBJECTID": 3}, geometry=square_geometry),
        ]
        result = ContainmentEvaluator().evaluate_pass(inside_point, polygon_layer, features)
        assert [f.id for f in result] == ["3"]


# =============================================================================
# Test: Distance
# =============================================================================


class TestDistanceEvaluator:
    """Tests for per-geometry distance."""

    def test_point(self, outside_point):
        geometry = parse_esri_geometry({"x": -120.0, "y": 39.0})
        miles, nearest = DistanceEvaluator().measure(outside_point, geometry)
        assert miles == pytest.approx(MILES_PER_DEGREE_LAT)
        assert nearest == (-120.0, 39.0)

    def test_multipoint_nearest(self, outside_point):
        geometry = parse_esri_geometry({"points": [[-120.0, 30.0], [-120.0, 39.5], [-120.0, 39.0]]})
        miles, nearest = DistanceEvaluator().measure(outside_point, geometry)
        assert nearest == (-120.0, 39.5)
        assert miles == pytest.approx(MILES_PER_DEGREE_LAT / 2)

    def test_polyline(self, inside_point, polyline_geometry):
        geometry = parse_esri_geometry(polyline_geometry)
        miles, _ = DistanceEvaluator().measure(QueryPoint(latitude=38.0, longitude=-119.5), geometry)
        assert miles == pytest.approx(0.0, abs=1e-9)

    def test_containing_polygon_is_zero(self, inside_point, square_geometry):
        geometry = parse_esri_geometry(square_geometry)
        miles, nearest = DistanceEvaluator().measure(inside_point, geometry, is_containing=True)
        assert miles == 0.0
        assert nearest == (-120.0, 38.0)

    def test_outside_polygon_boundary(self, outside_point, square_geometry):
        geometry = parse_esri_geometry(square_geometry)
        miles, nearest = DistanceEvaluator().measure(outside_point, geometry)
        assert miles == pytest.approx(69.09, abs=0.05)
        assert nearest == pytest.approx((-120.0, 39.0))

    def test_pass_drops_beyond_cap(self, point_layer, outside_point):
        features = [
            RawFeature(attributes={"OBJECTID": 1}, geometry={"x": -120.0, "y": 39.9}),
            RawFeature(attributes={"OBJECTID": 2}, geometry={"x": -120.0, "y": 39.0}),
        ]
        result = DistanceEvaluator().evaluate_pass(outside_point, point_layer, features, capped_miles=25)
        assert [f.id for f in result] == ["1"]
        assert result[0].distance_miles <= 25

    def test_pass_skips_known_ids(self, polygon_layer, inside_point, square_geometry):
        raw = RawFeature(attributes={"OBJECTID": 1}, geometry=square_geometry)
        result = DistanceEvaluator().evaluate_pass(
            inside_point, polygon_layer, [raw], capped_miles=10, skip_ids={"1"}
        )
        assert result == []

    def test_pass_detects_containment_without_containment_pass(self, polygon_layer, inside_point, square_geometry):
        raw = RawFeature(attributes={"OBJECTID": 1}, geometry=square_geometry)
        [evaluated] = DistanceEvaluator().evaluate_pass(inside_point, polygon_layer, [raw], capped_miles=10)
        assert evaluated.is_containing
        assert evaluated.distance_miles == 0.0

    def test_pass_skips_malformed(self, point_layer, outside_point):
        features = [
            RawFeature(attributes={"OBJECTID": 1}, geometry={"x": None, "y": 39.0}),
            RawFeature(attributes={"OBJECTID": 2}, geometry={}),
        ]
        assert DistanceEvaluator().evaluate_pass(outside_point, point_layer, features, capped_miles=25) == []
