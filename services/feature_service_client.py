# ============================================================================
# MODULE CONTEXT - ARCGIS FEATURE SERVICE HTTP CLIENT
# ============================================================================
# STATUS: Service Layer - default transport for the spatial query engine
# PURPOSE: Sync HTTP client for ArcGIS REST FeatureServer/MapServer query endpoints
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FeatureServiceClient, FeatureServiceResponse, FeatureServiceError
# DEPENDENCIES: httpx (sync), threading
# PORTABLE: Yes - no config imports, timeout/user agent passed by the caller
# ============================================================================
"""
ArcGIS Feature Service HTTP Client (SYNC VERSION).

Two calling styles:

- ``request(url, params)`` returns a ``FeatureServiceResponse`` wrapper and
  never raises. Used by health probes.
- ``fetch_json(url, params)`` returns the decoded JSON object or raises
  ``FeatureServiceError``. This is the ``FetchJSON`` callable the engine's
  paginated fetcher expects; the client instance itself is callable with the
  same signature.

ArcGIS servers frequently answer errors with a 200 and an HTML page (proxy
or maintenance pages) or with a JSON ``error`` object. HTML and undecodable
bodies are turned into failures here; JSON ``error`` objects are returned
as data so the caller can keep what it already fetched.
"""

import json
import threading
import httpx
from typing import Dict, Any, Optional
from dataclasses import dataclass

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.CLIENT, "FeatureServiceClient")


class FeatureServiceError(Exception):
    """Transport-level failure talking to a feature service."""

    def __init__(self, message: str, status_code: int = 500, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


@dataclass
class FeatureServiceResponse:
    """Response wrapper for feature service calls."""
    success: bool
    status_code: int
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def _looks_like_html(text: str, content_type: str) -> bool:
    if "html" in content_type:
        return True
    head = text.lstrip()[:15].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


class FeatureServiceClient:
    """
    Sync HTTP client for ArcGIS REST feature services.

    Usage:
        client = FeatureServiceClient(timeout=30.0)
        coordinator = QueryCoordinator(fetch=client)

        response = client.request(f"{service_url}", {"f": "json"})

        client.close()
    """

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "geocontext/1.0",
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize client.

        Args:
            timeout: Request timeout in seconds
            user_agent: User-Agent header sent with every request
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        """Get or create sync HTTP client (shared by worker threads)."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    timeout=httpx.Timeout(self.timeout),
                    follow_redirects=True,
                    headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                    transport=self._transport
                )
            return self._client

    def close(self):
        """Close the HTTP client."""
        with self._client_lock:
            if self._client and not self._client.is_closed:
                self._client.close()

    def request(self, url: str, params: Optional[Dict[str, Any]] = None) -> FeatureServiceResponse:
        """
        GET ``url`` and decode the JSON body.

        Returns:
            FeatureServiceResponse with result or error
        """
        client = self._get_client()

        try:
            response = client.get(url, params=params)

            if response.status_code >= 400:
                error_text = response.text[:500] if response.text else "Unknown error"
                return FeatureServiceResponse(
                    success=False,
                    status_code=response.status_code,
                    error=f"Feature service error: {error_text}"
                )

            content_type = response.headers.get("content-type", "")
            text = response.text

            if _looks_like_html(text, content_type):
                return FeatureServiceResponse(
                    success=False,
                    status_code=502,
                    error="Feature service returned an HTML page instead of JSON"
                )

            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                return FeatureServiceResponse(
                    success=False,
                    status_code=502,
                    error=f"Feature service returned invalid JSON: {e}"
                )

            if not isinstance(data, dict):
                return FeatureServiceResponse(
                    success=False,
                    status_code=502,
                    error=f"Feature service returned JSON {type(data).__name__}, expected object"
                )

            return FeatureServiceResponse(
                success=True,
                status_code=response.status_code,
                data=data
            )

        except httpx.TimeoutException:
            return FeatureServiceResponse(
                success=False,
                status_code=504,
                error=f"Feature service request timeout after {self.timeout}s"
            )
        except httpx.RequestError as e:
            return FeatureServiceResponse(
                success=False,
                status_code=500,
                error=f"Feature service request error: {str(e)}"
            )

    def fetch_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET ``url`` and return the JSON object.

        Raises:
            FeatureServiceError: Timeout, connection error, non-2xx, HTML or non-JSON body
        """
        response = self.request(url, params)
        if not response.success:
            logger.error(
                f"❌ {response.error}",
                extra={'custom_dimensions': {'url': url, 'status_code': response.status_code}}
            )
            raise FeatureServiceError(response.error or "request failed", response.status_code, url)
        return response.data

    __call__ = fetch_json

    def get_service_info(self, service_url: str) -> FeatureServiceResponse:
        """Service root metadata (``?f=json``), used for reachability probes."""
        response = self.request(service_url.rstrip("/"), {"f": "json"})
        if response.success and response.data and response.data.get("error"):
            return FeatureServiceResponse(
                success=False,
                status_code=response.status_code,
                data=response.data,
                error=f"Feature service error: {response.data['error']}"
            )
        return response
