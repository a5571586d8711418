# ============================================================================
# MODULE CONTEXT - PAGINATED FETCHER
# ============================================================================
# STATUS: Core Engine - remote feature retrieval
# PURPOSE: Spatially filtered ArcGIS queries with transfer-limit pagination and backoff
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FetchJSON, QueryPass, SpatialFilter, FetchOutcome, PaginatedFetcher
# DEPENDENCIES: json, time, util_logger
# PATTERNS: Injected transport callable, partial results over failure
# ============================================================================

"""
Paginated Fetcher.

Issues ``{service_url}/{layer_id}/query`` requests through an injected
``FetchJSON`` callable ``(url, params) -> dict`` and follows ArcGIS
pagination (``resultOffset`` / ``resultRecordCount`` with
``exceededTransferLimit``) until one of:

- the service reports an ``error`` object or the transport raises
  (stop, keep what was accumulated)
- an empty batch
- a batch smaller than the page size without ``exceededTransferLimit``
- the record ceiling (truncate, warn)

Batches are strictly sequential; a fixed delay separates them. The fetcher
never raises: failures come back as ``FetchOutcome.error``.
"""

import json
import time
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from util_logger import LoggerFactory, ComponentType

from .models import DistanceUnit, LayerConfig, QueryPoint, RawFeature

FetchJSON = Callable[[str, Dict[str, Any]], Dict[str, Any]]

logger = LoggerFactory.create_logger(ComponentType.FETCHER, "PaginatedFetcher")


class QueryPass(str, Enum):
    CONTAINMENT = "containment"
    PROXIMITY = "proximity"


@dataclass(frozen=True)
class SpatialFilter:
    """
    Spatial predicate for one pass.

    Containment is a zero-tolerance point intersect sent as a single request;
    proximity buffers the point by ``distance`` (in the service's unit) and is
    paginated.
    """
    point: QueryPoint
    query_pass: QueryPass
    distance: Optional[float] = None
    unit: Optional[DistanceUnit] = None

    @classmethod
    def containment(cls, point: QueryPoint) -> "SpatialFilter":
        return cls(point=point, query_pass=QueryPass.CONTAINMENT)

    @classmethod
    def proximity(cls, point: QueryPoint, miles: float, unit: DistanceUnit = DistanceUnit.METERS) -> "SpatialFilter":
        return cls(
            point=point,
            query_pass=QueryPass.PROXIMITY,
            distance=unit.from_miles(miles),
            unit=unit
        )

    @property
    def paginated(self) -> bool:
        return self.query_pass == QueryPass.PROXIMITY

    def to_params(self) -> Dict[str, str]:
        geometry = {
            "x": self.point.longitude,
            "y": self.point.latitude,
            "spatialReference": {"wkid": 4326}
        }
        params = {
            "geometry": json.dumps(geometry, separators=(",", ":")),
            "geometryType": "esriGeometryPoint",
            "spatialRel": "esriSpatialRelIntersects",
            "inSR": "4326",
        }
        if self.query_pass == QueryPass.PROXIMITY:
            unit = self.unit or DistanceUnit.METERS
            params["distance"] = f"{self.distance:.2f}"
            params["units"] = unit.esri_unit
        return params


@dataclass
class FetchOutcome:
    """Everything one pass retrieved, including partial results on failure."""
    features: List[RawFeature] = field(default_factory=list)
    requests_issued: int = 0
    truncated: bool = False
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def _describe_service_error(error: Any) -> str:
    if isinstance(error, dict):
        message = error.get("message") or "service error"
        code = error.get("code")
        details = [d for d in (error.get("details") or []) if d]
        text = f"{code}: {message}" if code is not None else str(message)
        if details:
            text += f" ({'; '.join(str(d) for d in details)})"
        return text
    return str(error)


class PaginatedFetcher:
    """
    Retrieves every feature matching a spatial filter.

    Args:
        fetch: Transport callable ``(url, params) -> dict``
        page_size: Default records per batch (layers may override)
        max_records: Hard ceiling on accumulated records
        batch_delay_seconds: Fixed pause between consecutive batches
        sleep: Sleep function (injectable for tests)
    """

    def __init__(
        self,
        fetch: FetchJSON,
        page_size: int = 2000,
        max_records: int = 100000,
        batch_delay_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep
    ):
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if max_records < 1:
            raise ValueError("max_records must be >= 1")
        self._fetch = fetch
        self.page_size = page_size
        self.max_records = max_records
        self.batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    def _base_params(self, layer: LayerConfig, spatial_filter: SpatialFilter) -> Dict[str, str]:
        params = {
            "f": "json",
            "where": layer.where,
            "outFields": layer.out_fields,
            "outSR": "4326",
            "returnGeometry": "true",
        }
        params.update(spatial_filter.to_params())
        return params

    def fetch(self, layer: LayerConfig, spatial_filter: SpatialFilter) -> FetchOutcome:
        """
        Run one pass against ``layer``.

        Returns:
            FetchOutcome with accumulated features; ``error`` is set when a
            batch failed, in which case the features fetched before it are kept
        """
        page_size = layer.page_size or self.page_size
        base_params = self._base_params(layer, spatial_filter)
        outcome = FetchOutcome()
        offset = 0
        dims = {'layer_key': layer.key, 'query_pass': spatial_filter.query_pass.value}

        while True:
            params = dict(base_params)
            if spatial_filter.paginated:
                params["resultRecordCount"] = str(page_size)
                params["resultOffset"] = str(offset)

            if outcome.requests_issued > 0 and self.batch_delay_seconds > 0:
                self._sleep(self.batch_delay_seconds)

            outcome.requests_issued += 1
            logger.debug(
                f"Requesting batch {outcome.requests_issued} for {layer.key}",
                extra={'custom_dimensions': {**dims, 'offset': offset, 'page_size': page_size}}
            )

            try:
                payload = self._fetch(layer.query_url, params)
            except Exception as e:
                outcome.error = f"request failed at offset {offset}: {e}"
                logger.error(
                    f"❌ Transport error for {layer.key}: {e}",
                    extra={'custom_dimensions': {**dims, 'offset': offset, 'error_type': type(e).__name__}}
                )
                return outcome

            if not isinstance(payload, dict):
                outcome.error = f"unexpected response type {type(payload).__name__} at offset {offset}"
                logger.error(f"❌ {outcome.error} for {layer.key}", extra={'custom_dimensions': dims})
                return outcome

            if payload.get("error"):
                outcome.error = f"service error at offset {offset}: {_describe_service_error(payload['error'])}"
                logger.error(
                    f"❌ Service reported error for {layer.key}: {outcome.error}",
                    extra={'custom_dimensions': {**dims, 'offset': offset}}
                )
                return outcome

            batch = payload.get("features") or []
            if not isinstance(batch, list):
                outcome.error = f"'features' is not a list at offset {offset}"
                logger.error(f"❌ {outcome.error} for {layer.key}", extra={'custom_dimensions': dims})
                return outcome

            spatial_reference = payload.get("spatialReference")
            for item in batch:
                if not isinstance(item, dict):
                    logger.warning(
                        f"Skipping non-object feature in {layer.key} response",
                        extra={'custom_dimensions': dims}
                    )
                    continue
                outcome.features.append(RawFeature(
                    attributes=item.get("attributes") or {},
                    geometry=item.get("geometry"),
                    spatial_reference=spatial_reference
                ))

            exceeded = bool(payload.get("exceededTransferLimit"))

            if not spatial_filter.paginated:
                if exceeded:
                    logger.warning(
                        f"Containment response for {layer.key} reported exceededTransferLimit; "
                        f"using the {len(batch)} features returned",
                        extra={'custom_dimensions': {**dims, 'batch_size': len(batch)}}
                    )
                break

            more = bool(batch) and (exceeded or len(batch) >= page_size)

            if len(outcome.features) > self.max_records or (more and len(outcome.features) >= self.max_records):
                outcome.features = outcome.features[:self.max_records]
                outcome.truncated = True
                logger.warning(
                    f"Record ceiling {self.max_records} reached for {layer.key}; stopping pagination",
                    extra={'custom_dimensions': {**dims, 'offset': offset, 'max_records': self.max_records}}
                )
                break

            if not more:
                break

            offset += len(batch)

        logger.debug(
            f"Fetched {len(outcome.features)} features for {layer.key} "
            f"in {outcome.requests_issued} request(s)",
            extra={'custom_dimensions': {**dims, 'feature_count': len(outcome.features)}}
        )
        return outcome
