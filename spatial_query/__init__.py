# ============================================================================
# MODULE CONTEXT - SPATIAL QUERY ENGINE MODULE
# ============================================================================
# STATUS: Standalone Module - Spatial Containment & Proximity Query Engine
# PURPOSE: "What contains this point, and what is nearby" across ArcGIS feature services
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: QueryCoordinator, SpatialContextService, LayerConfig, QueryPoint, get_context_triggers
# DEPENDENCIES: httpx (via services), pydantic, pyproj, azure-functions
# SCOPE: Standalone context API - portable to any Function App
# PATTERNS: Service Layer, Injected transport, Standalone Module
# ENTRY_POINTS: from spatial_query import get_context_triggers
# ============================================================================

"""
Spatial Query Engine - Standalone Module

Answers two questions for a coordinate against any number of ArcGIS REST
feature layers: which polygons contain it, and which features lie within a
radius (and how far). Each layer is a configuration record; one engine
serves them all.

Architecture:
    spatial_query/
    ├── geometry.py     # Ray casting, haversine, segment distance, CRS normalization
    ├── fetcher.py      # Transfer-limit pagination with fixed backoff
    ├── evaluators.py   # Containment re-check and per-geometry distance
    ├── assembler.py    # Dedup by id, containing first, ascending distance
    ├── coordinator.py  # Per-layer state machine, concurrent multi-layer queries
    ├── fields.py       # Declarative field aliases and feature ids
    ├── models.py       # Pydantic inputs/responses, frozen engine records
    ├── catalog.py      # Built-in layers
    ├── registry.py     # Layer lookup, JSON catalog loading
    ├── config.py       # Environment-based engine configuration
    ├── service.py      # Business logic layer
    └── triggers.py     # Azure Functions HTTP handlers

Usage without Azure Functions:
    from services.feature_service_client import FeatureServiceClient
    from spatial_query import QueryCoordinator, QueryPoint, get_layer_registry

    coordinator = QueryCoordinator(fetch=FeatureServiceClient())
    layer = get_layer_registry().get("blm-acec")
    result = coordinator.query(QueryPoint(latitude=38.5, longitude=-117.0), 10, layer)
"""

from .config import SpatialQueryConfig, get_spatial_query_config
from .coordinator import QueryCoordinator
from .models import LayerConfig, QueryPoint, RadiusSpec, LayerQueryResult, EvaluatedFeature
from .registry import LayerRegistry, get_layer_registry
from .service import SpatialContextService
from .triggers import get_context_triggers

__version__ = "1.0.0"
__all__ = [
    "SpatialQueryConfig",
    "get_spatial_query_config",
    "QueryCoordinator",
    "LayerConfig",
    "QueryPoint",
    "RadiusSpec",
    "LayerQueryResult",
    "EvaluatedFeature",
    "LayerRegistry",
    "get_layer_registry",
    "SpatialContextService",
    "get_context_triggers",
]
