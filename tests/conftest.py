"""Pytest configuration and fixtures.

Provides a scripted fake feature service standing in for the ``FetchJSON``
transport, plus the canonical geometries used across the suite.
"""

import threading
from typing import Any, Dict, List, Optional

import pytest

from spatial_query.config import SpatialQueryConfig
from spatial_query.models import LayerConfig, QueryPoint


# =============================================================================
# Fake Feature Service
# =============================================================================


class FakeFeatureService:
    """
    Scripted ``(url, params) -> dict`` transport.

    Serves queued payloads in order (an Exception instance is raised instead
    of returned). ``routes`` maps a query URL to its own queue. Every call is
    recorded in ``requests``. An exhausted queue answers with no features.
    """

    def __init__(self, responses: Optional[List[Any]] = None, routes: Optional[Dict[str, List[Any]]] = None):
        self._queue = list(responses or [])
        self._routes = {url: list(queue) for url, queue in (routes or {}).items()}
        self._lock = threading.Lock()
        self.requests: List[Dict[str, Any]] = []

    def __call__(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            self.requests.append({"url": url, "params": dict(params)})
            queue = self._routes.get(url, self._queue)
            response = queue.pop(0) if queue else {"features": []}
        if isinstance(response, Exception):
            raise response
        return response

    def requests_for(self, url: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["url"] == url]


def feature(attributes: Dict[str, Any], geometry: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """ESRI JSON feature."""
    return {"attributes": attributes, "geometry": geometry}


def page(features: List[Dict[str, Any]], exceeded: bool = False) -> Dict[str, Any]:
    """ESRI JSON query response."""
    payload = {"features": features, "spatialReference": {"wkid": 4326, "latestWkid": 4326}}
    if exceeded:
        payload["exceededTransferLimit"] = True
    return payload


# =============================================================================
# Geometry Fixtures
# =============================================================================

SQUARE_RING = [[-121, 37], [-119, 37], [-119, 39], [-121, 39], [-121, 37]]
HOLE_RING = [[-120.5, 37.5], [-119.5, 37.5], [-119.5, 38.5], [-120.5, 38.5], [-120.5, 37.5]]
POLYLINE_PATH = [[-120, 38], [-119, 38], [-119, 39]]


@pytest.fixture
def square_ring():
    return [tuple(c) for c in SQUARE_RING]


@pytest.fixture
def square_geometry() -> Dict[str, Any]:
    return {"rings": [SQUARE_RING]}


@pytest.fixture
def holed_square_geometry() -> Dict[str, Any]:
    return {"rings": [SQUARE_RING, HOLE_RING]}


@pytest.fixture
def polyline_geometry() -> Dict[str, Any]:
    return {"paths": [POLYLINE_PATH]}


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    calls: List[float] = []

    def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep


@pytest.fixture
def engine_config() -> SpatialQueryConfig:
    return SpatialQueryConfig(
        page_size=3,
        max_records=100,
        batch_delay_ms=0,
        max_concurrent_layers=4,
        layer_timeout_seconds=5,
        max_layers_per_request=3,
        include_geometry=False
    )


@pytest.fixture
def polygon_layer() -> LayerConfig:
    return LayerConfig(
        key="squares",
        title="Test Squares",
        service_url="https://example.test/arcgis/rest/services/Squares/FeatureServer/",
        layer_id=0,
        geometry_kind="polygon",
        radius_cap_miles=100,
        field_aliases={"name": ["NAME", "Name"]}
    )


@pytest.fixture
def line_layer() -> LayerConfig:
    return LayerConfig(
        key="roads",
        title="Test Roads",
        service_url="https://example.test/arcgis/rest/services/Roads/FeatureServer",
        layer_id=2,
        geometry_kind="polyline",
        radius_cap_miles=5
    )


@pytest.fixture
def point_layer() -> LayerConfig:
    return LayerConfig(
        key="stations",
        title="Test Stations",
        service_url="https://example.test/arcgis/rest/services/Stations/FeatureServer",
        layer_id=1,
        geometry_kind="point",
        radius_cap_miles=25,
        distance_unit="kilometers"
    )


@pytest.fixture
def inside_point() -> QueryPoint:
    return QueryPoint(latitude=38.0, longitude=-120.0)


@pytest.fixture
def outside_point() -> QueryPoint:
    return QueryPoint(latitude=40.0, longitude=-120.0)
