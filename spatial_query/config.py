# ============================================================================
# MODULE CONTEXT - SPATIAL QUERY ENGINE CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - Spatial Containment & Proximity engine
# PURPOSE: Pagination, backoff and concurrency settings for the query engine
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: SpatialQueryConfig, get_spatial_query_config
# INTERFACES: Pydantic BaseModel
# PYDANTIC_MODELS: SpatialQueryConfig
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables (no dependency on main app config)
# VALIDATION: Pydantic v2 validation
# PATTERNS: Settings Pattern, Singleton via cached function
# ENTRY_POINTS: from spatial_query.config import get_spatial_query_config
# ============================================================================

"""
Spatial Query Engine Configuration - Standalone

Environment Variables (all optional):
    - SPATIAL_PAGE_SIZE: Records requested per batch (default: 2000)
    - SPATIAL_MAX_RECORDS: Hard pagination ceiling per query (default: 100000)
    - SPATIAL_BATCH_DELAY_MS: Fixed delay between batches (default: 100)
    - SPATIAL_MAX_CONCURRENT_LAYERS: Worker threads for multi-layer queries (default: 8)
    - SPATIAL_LAYER_TIMEOUT: Seconds before a layer is reported as failed (default: 120)
    - SPATIAL_MAX_LAYERS_PER_REQUEST: Cap on layers in one context request (default: 25)
    - SPATIAL_INCLUDE_GEOMETRY: Include raw geometry in responses (default: false)
"""

import os
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class SpatialQueryConfig(BaseModel):
    """
    Configuration for the spatial query engine - completely standalone.
    """

    page_size: int = Field(
        default_factory=lambda: int(os.getenv("SPATIAL_PAGE_SIZE", "2000")),
        ge=1,
        le=10000,
        description="Records requested per batch (resultRecordCount)"
    )
    max_records: int = Field(
        default_factory=lambda: int(os.getenv("SPATIAL_MAX_RECORDS", "100000")),
        ge=1,
        description="Hard ceiling on records accumulated by one paginated query"
    )
    batch_delay_ms: int = Field(
        default_factory=lambda: int(os.getenv("SPATIAL_BATCH_DELAY_MS", "100")),
        ge=0,
        le=10000,
        description="Fixed delay between batches in milliseconds"
    )
    max_concurrent_layers: int = Field(
        default_factory=lambda: int(os.getenv("SPATIAL_MAX_CONCURRENT_LAYERS", "8")),
        ge=1,
        le=64,
        description="Worker threads used for multi-layer queries"
    )
    layer_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("SPATIAL_LAYER_TIMEOUT", "120")),
        gt=0,
        description="Seconds a single layer may run inside a multi-layer query"
    )
    max_layers_per_request: int = Field(
        default_factory=lambda: int(os.getenv("SPATIAL_MAX_LAYERS_PER_REQUEST", "25")),
        ge=1,
        description="Maximum number of layers accepted in one context request"
    )
    include_geometry: bool = Field(
        default_factory=lambda: os.getenv("SPATIAL_INCLUDE_GEOMETRY", "false").lower() == "true",
        description="Include raw service geometry in API responses by default"
    )

    @field_validator("max_records")
    @classmethod
    def validate_ceiling(cls, v: int, info) -> int:
        """The ceiling must allow at least one full batch."""
        page_size = info.data.get("page_size")
        if page_size is not None and v < page_size:
            raise ValueError(
                f"max_records ({v}) must be >= page_size ({page_size}) - "
                "check SPATIAL_MAX_RECORDS and SPATIAL_PAGE_SIZE"
            )
        return v

    @property
    def batch_delay_seconds(self) -> float:
        """Inter-batch delay as seconds for time.sleep()."""
        return self.batch_delay_ms / 1000.0


# Singleton instance cache
_config_cache: Optional[SpatialQueryConfig] = None


def get_spatial_query_config() -> SpatialQueryConfig:
    """
    Get singleton spatial query configuration instance.

    Returns:
        Cached configuration instance

    Raises:
        ValueError: If environment variables hold invalid values
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = SpatialQueryConfig()

    return _config_cache
