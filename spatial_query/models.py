# ============================================================================
# MODULE CONTEXT - SPATIAL QUERY MODELS
# ============================================================================
# STATUS: Standalone Models - engine records and API response models
# PURPOSE: Validated inputs (QueryPoint, RadiusSpec, LayerConfig), engine records, responses
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: QueryPoint, RadiusSpec, DistanceUnit, LayerConfig, RawFeature, EvaluatedFeature,
#          LayerStatus, LayerQueryResult, ContextQueryParameters, ContextFeature,
#          LayerSummary, LayerListResponse, LayerContextResponse, ContextResponse
# INTERFACES: Pydantic BaseModel, frozen dataclasses
# DEPENDENCIES: pydantic, dataclasses, typing
# VALIDATION: Pydantic v2 validation
# PATTERNS: Data Transfer Objects (DTOs), immutable engine records
# ENTRY_POINTS: from spatial_query.models import QueryPoint, LayerConfig
# ============================================================================

"""
Spatial Query Pydantic Models

Inputs to the engine are pydantic models so bad coordinates and malformed
layer definitions are rejected before any request leaves the process.
Records produced while a query runs (RawFeature, EvaluatedFeature,
LayerQueryResult) are frozen dataclasses: they are created once and never
mutated.
"""

import math
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .geometry import Coordinate, Geometry, GeometryKind, METERS_PER_MILE


DEFAULT_ID_FIELDS = [
    "OBJECTID",
    "objectid",
    "FID",
    "fid",
    "OBJECTID_1",
    "ESRI_OID",
    "GlobalID",
]


# ============================================================================
# QUERY INPUTS
# ============================================================================

class QueryPoint(BaseModel):
    """WGS84 query location. Immutable."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False, description="Latitude in degrees")
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False, description="Longitude in degrees")

    def as_xy(self) -> Coordinate:
        """(lon, lat) tuple in ESRI x/y order."""
        return (self.longitude, self.latitude)


class RadiusSpec(BaseModel):
    """
    Requested proximity radius clamped to a layer's cap.

    A capped radius of 0 means containment only, no proximity pass.
    """
    model_config = ConfigDict(frozen=True)

    requested_miles: float = Field(ge=0, allow_inf_nan=False)
    cap_miles: float = Field(gt=0, allow_inf_nan=False)
    capped_miles: float = Field(ge=0, allow_inf_nan=False)

    @classmethod
    def from_request(cls, requested_miles: Optional[float], cap_miles: float) -> "RadiusSpec":
        """Build from caller input; None and values <= 0 disable the proximity pass."""
        requested = 0.0
        if requested_miles is not None and math.isfinite(requested_miles) and requested_miles > 0:
            requested = float(requested_miles)
        return cls(
            requested_miles=requested,
            cap_miles=cap_miles,
            capped_miles=min(requested, cap_miles)
        )

    @property
    def proximity_enabled(self) -> bool:
        return self.capped_miles > 0


# ============================================================================
# LAYER CONFIGURATION
# ============================================================================

class DistanceUnit(str, Enum):
    """Units accepted by a feature service's ``distance`` parameter."""
    METERS = "meters"
    KILOMETERS = "kilometers"
    FEET = "feet"
    STATUTE_MILES = "statute_miles"

    @property
    def esri_unit(self) -> str:
        return _ESRI_UNITS[self]

    def from_miles(self, miles: float) -> float:
        """Convert a radius in miles to this unit."""
        return miles * _PER_MILE[self]


_ESRI_UNITS = {
    DistanceUnit.METERS: "esriSRUnit_Meter",
    DistanceUnit.KILOMETERS: "esriSRUnit_Kilometer",
    DistanceUnit.FEET: "esriSRUnit_Foot",
    DistanceUnit.STATUTE_MILES: "esriSRUnit_StatuteMile",
}

_PER_MILE = {
    DistanceUnit.METERS: METERS_PER_MILE,
    DistanceUnit.KILOMETERS: METERS_PER_MILE / 1000.0,
    DistanceUnit.FEET: 5280.0,
    DistanceUnit.STATUTE_MILES: 1.0,
}


class LayerConfig(BaseModel):
    """
    One logical feature layer the engine can query.

    Attributes:
        key: Stable identifier used in API routes
        service_url: FeatureServer/MapServer root (no trailing slash)
        layer_id: Numeric layer index under the service
        geometry_kind: Declared geometry family of the layer
        radius_cap_miles: Hard upper bound on the proximity radius
        page_size: Per-layer override of SPATIAL_PAGE_SIZE
        id_fields: Attribute aliases tried, in order, for the feature id
        field_aliases: Normalized property name -> attribute aliases
        containment: Run the containment pass (polygon layers only)
    """
    model_config = ConfigDict(frozen=True)

    key: str = Field(pattern=r"^[a-z0-9][a-z0-9_\-]*$", description="Layer key used in routes")
    title: str = Field(description="Human-readable title")
    description: Optional[str] = Field(default=None, description="Layer description")
    service_url: str = Field(description="ArcGIS REST service root URL")
    layer_id: int = Field(ge=0, description="Layer index under the service")
    geometry_kind: GeometryKind = Field(description="Declared geometry family")
    radius_cap_miles: float = Field(gt=0, allow_inf_nan=False, description="Maximum proximity radius in miles")
    page_size: Optional[int] = Field(default=None, ge=1, le=10000, description="Batch size override")
    where: str = Field(default="1=1", description="Attribute filter sent with every request")
    out_fields: str = Field(default="*", description="outFields parameter")
    distance_unit: DistanceUnit = Field(default=DistanceUnit.METERS, description="Unit for the distance parameter")
    id_fields: List[str] = Field(default_factory=lambda: list(DEFAULT_ID_FIELDS), min_length=1)
    field_aliases: Dict[str, List[str]] = Field(default_factory=dict)
    containment: bool = Field(default=True, description="Run the containment pass for polygon layers")

    @field_validator("service_url")
    @classmethod
    def validate_service_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"service_url must be an http(s) URL, got '{v}'")
        return v

    @property
    def query_url(self) -> str:
        return f"{self.service_url}/{self.layer_id}/query"

    @property
    def runs_containment(self) -> bool:
        return self.containment and self.geometry_kind == GeometryKind.POLYGON


# ============================================================================
# ENGINE RECORDS
# ============================================================================

@dataclass(frozen=True)
class RawFeature:
    """One feature exactly as the service returned it."""
    attributes: Dict[str, Any]
    geometry: Optional[Dict[str, Any]]
    spatial_reference: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class EvaluatedFeature:
    """A feature classified and measured against the query point."""
    id: str
    layer_key: str
    raw: RawFeature
    properties: Dict[str, Any]
    distance_miles: float
    is_containing: bool
    nearest_point: Optional[Coordinate] = None
    geometry: Optional[Geometry] = None


class LayerStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class LayerQueryResult:
    """ResultSet for one layer plus diagnostics."""
    layer_key: str
    status: LayerStatus
    radius: RadiusSpec
    features: List[EvaluatedFeature] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    requests_issued: int = 0
    truncated: bool = False
    duration_ms: float = 0.0


# ============================================================================
# API MODELS
# ============================================================================

class ContextQueryParameters(BaseModel):
    """
    Query parameters for the context endpoints.

    ``layers`` is a comma separated list of layer keys; omitted means all.
    """
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False, description="Latitude (WGS84)")
    lon: float = Field(ge=-180, le=180, allow_inf_nan=False, description="Longitude (WGS84)")
    radius: Optional[float] = Field(
        default=None,
        ge=0,
        allow_inf_nan=False,
        description="Proximity radius in miles (clamped per layer; 0 or omitted = containment only)"
    )
    layers: Optional[List[str]] = Field(default=None, description="Layer keys to query")
    geometry: bool = Field(default=False, description="Include raw service geometry")

    @field_validator("layers", mode="before")
    @classmethod
    def split_layers(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",")]
        keys = [key for key in v if key]
        return keys or None

    @property
    def point(self) -> QueryPoint:
        return QueryPoint(latitude=self.lat, longitude=self.lon)


class ContextFeature(BaseModel):
    """One evaluated feature in an API response."""
    id: str
    layer: str
    is_containing: bool = Field(description="Query point lies inside this feature")
    distance_miles: float = Field(ge=0, description="0 for containing features")
    nearest_point: Optional[Tuple[float, float]] = Field(
        default=None,
        description="Closest location on the feature as (lon, lat)"
    )
    properties: Dict[str, Any] = Field(default_factory=dict)
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Raw service attributes")
    geometry: Optional[Dict[str, Any]] = Field(default=None, description="Raw ESRI JSON geometry")


class LayerSummary(BaseModel):
    key: str
    title: str
    description: Optional[str] = None
    geometry_kind: GeometryKind
    radius_cap_miles: float
    containment: bool
    service_url: str
    layer_id: int


class LayerListResponse(BaseModel):
    layers: List[LayerSummary]
    count: int


class LayerContextResponse(BaseModel):
    """Result of querying one layer."""
    layer: str
    title: str
    status: LayerStatus
    requested_radius_miles: float
    radius_miles: float = Field(description="Radius actually applied after the layer cap")
    features: List[ContextFeature]
    count: int
    truncated: bool = False
    requests_issued: int = 0
    duration_ms: float = 0.0
    errors: Optional[List[str]] = None


class ContextResponse(BaseModel):
    """Result of querying several layers at one point."""
    latitude: float
    longitude: float
    requested_radius_miles: float
    layers: List[LayerContextResponse]
    timestamp: str = Field(description="Response timestamp (ISO 8601)")
