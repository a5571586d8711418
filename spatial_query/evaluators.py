# ============================================================================
# MODULE CONTEXT - CONTAINMENT & DISTANCE EVALUATORS
# ============================================================================
# STATUS: Core Engine - per-feature classification
# PURPOSE: Client-side point-in-polygon re-check and per-geometry distance in miles
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: parse_feature_geometry, ContainmentEvaluator, DistanceEvaluator
# DEPENDENCIES: util_logger
# PATTERNS: Skip-and-warn per feature, never abort a batch
# ============================================================================

"""
Containment and Distance Evaluators.

The service's ``esriSpatialRelIntersects`` predicate is looser than true
point-in-polygon, so containment is always re-checked here. A feature whose
geometry is missing or malformed is skipped with a warning and never given a
sentinel distance.
"""

import logging
import math
from typing import Iterable, List, Optional, Set, Tuple, Union

from util_logger import ContextLogger, LoggerFactory, ComponentType

from .fields import normalize_attributes, resolve_feature_id
from .geometry import (
    Coordinate,
    Geometry,
    MalformedGeometryError,
    MultiPointGeometry,
    PointGeometry,
    PolygonGeometry,
    PolylineGeometry,
    haversine_miles,
    nearest_of_points,
    nearest_on_paths,
    parse_esri_geometry,
    point_in_polygon,
)
from .models import EvaluatedFeature, LayerConfig, QueryPoint, RawFeature

logger = LoggerFactory.create_logger(ComponentType.EVALUATOR, "FeatureEvaluator")


def parse_feature_geometry(
    feature: RawFeature,
    layer_key: str,
    log: Optional[Union[logging.Logger, ContextLogger]] = None
) -> Optional[Geometry]:
    """Parse a feature's geometry, logging and returning None when unusable."""
    log = log or logger
    if not feature.geometry:
        log.warning(
            f"Feature in {layer_key} has no geometry; skipping",
            extra={'custom_dimensions': {'layer_key': layer_key}}
        )
        return None
    try:
        return parse_esri_geometry(feature.geometry, feature.spatial_reference)
    except MalformedGeometryError as e:
        log.warning(
            f"Malformed geometry in {layer_key}: {e}; skipping",
            extra={'custom_dimensions': {'layer_key': layer_key, 'reason': str(e)}}
        )
        return None


class ContainmentEvaluator:
    """Decides whether the query point lies inside a polygon feature."""

    def __init__(self, log: Optional[Union[logging.Logger, ContextLogger]] = None):
        self.log = log or logger

    def contains(self, point: QueryPoint, geometry: Geometry) -> bool:
        if not isinstance(geometry, PolygonGeometry):
            return False
        return point_in_polygon(point.as_xy(), geometry.rings)

    def evaluate(self, point: QueryPoint, feature: RawFeature, layer_key: str = "") -> bool:
        """Containment of one raw feature; False for non-polygons and bad geometry."""
        geometry = parse_feature_geometry(feature, layer_key, self.log)
        return geometry is not None and self.contains(point, geometry)

    def evaluate_pass(
        self,
        point: QueryPoint,
        layer: LayerConfig,
        features: Iterable[RawFeature]
    ) -> List[EvaluatedFeature]:
        """Containing features from a containment pass, distance fixed at 0."""
        results = []
        rejected = 0
        for feature in features:
            geometry = parse_feature_geometry(feature, layer.key, self.log)
            if geometry is None:
                continue
            if not self.contains(point, geometry):
                rejected += 1
                continue
            results.append(EvaluatedFeature(
                id=resolve_feature_id(feature, layer.id_fields),
                layer_key=layer.key,
                raw=feature,
                properties=normalize_attributes(feature.attributes, layer.field_aliases),
                distance_miles=0.0,
                is_containing=True,
                nearest_point=point.as_xy(),
                geometry=geometry
            ))

        if rejected:
            self.log.debug(
                f"{rejected} feature(s) in {layer.key} intersected server-side but do not contain the point",
                extra={'custom_dimensions': {'layer_key': layer.key, 'rejected': rejected}}
            )
        return results


class DistanceEvaluator:
    """Distance in miles from the query point to any geometry kind."""

    def __init__(self, log: Optional[Union[logging.Logger, ContextLogger]] = None):
        self.log = log or logger

    def measure(
        self,
        point: QueryPoint,
        geometry: Geometry,
        is_containing: bool = False
    ) -> Tuple[float, Optional[Coordinate]]:
        """
        Returns:
            (miles, nearest location); (inf, None) when the geometry has no vertices
        """
        xy = point.as_xy()
        if isinstance(geometry, PointGeometry):
            return haversine_miles(xy, geometry.coordinate), geometry.coordinate
        if isinstance(geometry, MultiPointGeometry):
            nearest, miles = nearest_of_points(xy, geometry.points)
            return miles, nearest
        if isinstance(geometry, PolylineGeometry):
            nearest, miles = nearest_on_paths(xy, geometry.paths)
            return miles, nearest
        if isinstance(geometry, PolygonGeometry):
            if is_containing:
                return 0.0, xy
            nearest, miles = nearest_on_paths(xy, geometry.rings, closed=True)
            return miles, nearest
        raise MalformedGeometryError(f"unsupported geometry {type(geometry).__name__}")

    def evaluate_pass(
        self,
        point: QueryPoint,
        layer: LayerConfig,
        features: Iterable[RawFeature],
        capped_miles: float,
        skip_ids: Optional[Set[str]] = None
    ) -> List[EvaluatedFeature]:
        """
        Measure proximity-pass features, dropping those beyond ``capped_miles``.

        Features whose id is in ``skip_ids`` (already found containing) are not
        re-evaluated. Polygons are still checked for containment so a point
        inside one reports distance 0 even without a containment pass.
        """
        skip_ids = skip_ids or set()
        results = []
        beyond = 0
        for feature in features:
            feature_id = resolve_feature_id(feature, layer.id_fields)
            if feature_id in skip_ids:
                continue

            geometry = parse_feature_geometry(feature, layer.key, self.log)
            if geometry is None:
                continue

            is_containing = isinstance(geometry, PolygonGeometry) and point_in_polygon(point.as_xy(), geometry.rings)
            miles, nearest = self.measure(point, geometry, is_containing)
            if not math.isfinite(miles):
                self.log.warning(
                    f"Feature {feature_id} in {layer.key} has no measurable vertices; skipping",
                    extra={'custom_dimensions': {'layer_key': layer.key, 'feature_id': feature_id}}
                )
                continue
            if miles > capped_miles:
                beyond += 1
                continue

            results.append(EvaluatedFeature(
                id=feature_id,
                layer_key=layer.key,
                raw=feature,
                properties=normalize_attributes(feature.attributes, layer.field_aliases),
                distance_miles=miles,
                is_containing=is_containing,
                nearest_point=nearest,
                geometry=geometry
            ))

        if beyond:
            self.log.debug(
                f"Dropped {beyond} feature(s) in {layer.key} beyond {capped_miles:.2f} mi",
                extra={'custom_dimensions': {'layer_key': layer.key, 'dropped': beyond}}
            )
        return results
