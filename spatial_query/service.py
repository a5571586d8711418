# ============================================================================
# MODULE CONTEXT - SPATIAL CONTEXT SERVICE
# ============================================================================
# STATUS: Service Layer - business logic for the context API
# PURPOSE: Resolve layers, run the query coordinator, build response models
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: SpatialContextService
# PYDANTIC_MODELS: LayerListResponse, LayerContextResponse, ContextResponse
# DEPENDENCIES: util_logger, services.feature_service_client
# PATTERNS: Service Layer, Facade Pattern
# ENTRY_POINTS: service = SpatialContextService(); service.query_context(params)
# ============================================================================

"""
Spatial Context Service - Business Logic Layer

Sits between the HTTP triggers and the query engine:
- Layer lookup and validation against the registry
- Per-request layer limits
- Conversion of engine records into response models
"""

from datetime import datetime, timezone
from typing import Optional

from util_logger import LoggerFactory, ComponentType

from .config import SpatialQueryConfig, get_spatial_query_config
from .coordinator import QueryCoordinator
from .models import (
    ContextFeature,
    ContextQueryParameters,
    ContextResponse,
    EvaluatedFeature,
    LayerConfig,
    LayerContextResponse,
    LayerListResponse,
    LayerQueryResult,
    LayerSummary,
)
from .registry import LayerRegistry, get_layer_registry

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "SpatialContextService")


class LayerLimitError(Exception):
    """Too many layers named in one context request."""


def _default_coordinator(config: SpatialQueryConfig) -> QueryCoordinator:
    from config import get_app_config
    from services.feature_service_client import FeatureServiceClient

    app_config = get_app_config()
    client = FeatureServiceClient(
        timeout=app_config.feature_service_timeout,
        user_agent=app_config.feature_service_user_agent
    )
    return QueryCoordinator(fetch=client, config=config)


class SpatialContextService:
    """
    Business logic for the context API.

    Args:
        registry: Layer registry (singleton if not provided)
        coordinator: Query coordinator (built around FeatureServiceClient if not provided)
        config: Engine configuration (singleton if not provided)
    """

    def __init__(
        self,
        registry: Optional[LayerRegistry] = None,
        coordinator: Optional[QueryCoordinator] = None,
        config: Optional[SpatialQueryConfig] = None
    ):
        self.config = config or get_spatial_query_config()
        self.registry = registry if registry is not None else get_layer_registry()
        self.coordinator = coordinator or _default_coordinator(self.config)
        logger.info("SpatialContextService initialized")

    # ========================================================================
    # LAYERS
    # ========================================================================

    def list_layers(self) -> LayerListResponse:
        summaries = [
            LayerSummary(
                key=layer.key,
                title=layer.title,
                description=layer.description,
                geometry_kind=layer.geometry_kind,
                radius_cap_miles=layer.radius_cap_miles,
                containment=layer.runs_containment,
                service_url=layer.service_url,
                layer_id=layer.layer_id
            )
            for layer in self.registry.list_layers()
        ]
        return LayerListResponse(layers=summaries, count=len(summaries))

    # ========================================================================
    # QUERIES
    # ========================================================================

    def query_layer(
        self,
        layer_key: str,
        params: ContextQueryParameters,
        request_id: Optional[str] = None
    ) -> LayerContextResponse:
        """
        Query one layer.

        Raises:
            LayerNotFoundError: Unknown layer key
        """
        layer = self.registry.get(layer_key)
        result = self.coordinator.query(params.point, params.radius, layer, request_id=request_id)
        return self._layer_response(layer, result, params)

    def query_context(
        self,
        params: ContextQueryParameters,
        request_id: Optional[str] = None
    ) -> ContextResponse:
        """
        Query several layers concurrently (all registered layers when none are named).

        Raises:
            LayerNotFoundError: Unknown layer key
            LayerLimitError: More layers than SPATIAL_MAX_LAYERS_PER_REQUEST
        """
        layers = self.registry.resolve(params.layers)
        if len(layers) > self.config.max_layers_per_request:
            raise LayerLimitError(
                f"{len(layers)} layers requested; at most "
                f"{self.config.max_layers_per_request} are allowed per request"
            )

        logger.info(
            f"Context query at ({params.lat}, {params.lon}) across {len(layers)} layer(s)",
            extra={'custom_dimensions': {'request_id': request_id, 'layer_count': len(layers), 'radius': params.radius}}
        )

        results = self.coordinator.query_layers(params.point, params.radius, layers, request_id=request_id)
        return ContextResponse(
            latitude=params.lat,
            longitude=params.lon,
            requested_radius_miles=params.radius or 0.0,
            layers=[
                self._layer_response(layer, result, params)
                for layer, result in zip(layers, results)
            ],
            timestamp=datetime.now(timezone.utc).isoformat()
        )

    # ========================================================================
    # RESPONSE BUILDING
    # ========================================================================

    def _include_geometry(self, params: ContextQueryParameters) -> bool:
        return params.geometry or self.config.include_geometry

    def _feature(self, feature: EvaluatedFeature, include_geometry: bool) -> ContextFeature:
        return ContextFeature(
            id=feature.id,
            layer=feature.layer_key,
            is_containing=feature.is_containing,
            distance_miles=round(feature.distance_miles, 4),
            nearest_point=feature.nearest_point,
            properties=feature.properties,
            attributes=feature.raw.attributes,
            geometry=feature.raw.geometry if include_geometry else None
        )

    def _layer_response(
        self,
        layer: LayerConfig,
        result: LayerQueryResult,
        params: ContextQueryParameters
    ) -> LayerContextResponse:
        include_geometry = self._include_geometry(params)
        features = [self._feature(f, include_geometry) for f in result.features]
        return LayerContextResponse(
            layer=layer.key,
            title=layer.title,
            status=result.status,
            requested_radius_miles=result.radius.requested_miles,
            radius_miles=result.radius.capped_miles,
            features=features,
            count=len(features),
            truncated=result.truncated,
            requests_issued=result.requests_issued,
            duration_ms=round(result.duration_ms, 1),
            errors=result.errors or None
        )

