# ============================================================================
# MODULE CONTEXT - SPATIAL CONTEXT TRIGGERS
# ============================================================================
# STATUS: Standalone HTTP Triggers - context API endpoints
# PURPOSE: Azure Functions HTTP triggers for layer listing and point context queries
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: get_context_triggers (returns list of trigger configurations), ServiceProvider
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# PYDANTIC_MODELS: ContextQueryParameters (for validation)
# DEPENDENCIES: azure.functions, pydantic, json, threading, uuid
# PATTERNS: Trigger Pattern, Factory Pattern (get_context_triggers)
# ENTRY_POINTS: Function App route registration via get_context_triggers()
# ============================================================================

"""
Spatial Context API HTTP Triggers - Azure Functions Handlers

- GET /api/context/layers - List registered layers
- GET /api/context/layers/{layer_key}?lat=&lon=&radius=&geometry= - Query one layer
- GET /api/context?lat=&lon=&radius=&layers=a,b&geometry= - Query several layers

Integration:
    In function_app.py:

    from spatial_query import get_context_triggers

    for trigger in get_context_triggers():
        app.route(
            route=trigger['route'],
            methods=trigger['methods'],
            auth_level=func.AuthLevel.ANONYMOUS
        )(trigger['handler'])
"""

import azure.functions as func
import json
import threading
import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from util_logger import LoggerFactory, ComponentType

from .models import ContextQueryParameters
from .registry import LayerNotFoundError
from .service import LayerLimitError, SpatialContextService

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "ContextTriggers")

_QUERY_PARAMS = ("lat", "lon", "radius", "layers", "geometry")


# ============================================================================
# TRIGGER REGISTRY FUNCTION
# ============================================================================

def get_context_triggers(service: Optional[SpatialContextService] = None) -> List[Dict[str, Any]]:
    """
    Get list of context API trigger configurations for function_app.py.

    Args:
        service: Shared service instance (created lazily on first request if not provided)

    Returns:
        List of dicts with keys route, methods, handler
    """
    provider = ServiceProvider(service)
    return [
        {
            'route': 'context/layers',
            'methods': ['GET'],
            'handler': LayerListTrigger(provider=provider).handle
        },
        {
            'route': 'context/layers/{layer_key}',
            'methods': ['GET'],
            'handler': LayerContextTrigger(provider=provider).handle
        },
        {
            'route': 'context',
            'methods': ['GET'],
            'handler': ContextTrigger(provider=provider).handle
        }
    ]


class ServiceProvider:
    """One SpatialContextService shared by all triggers, built on first use."""

    def __init__(self, service: Optional[SpatialContextService] = None):
        self._service = service
        self._lock = threading.Lock()

    def get(self) -> SpatialContextService:
        # Deferred so registering routes never touches the catalog file
        with self._lock:
            if self._service is None:
                self._service = SpatialContextService()
            return self._service


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BaseContextTrigger:
    """
    Base class for context API triggers.

    Provides query parameter validation, JSON response formatting and error
    responses.
    """

    def __init__(
        self,
        service: Optional[SpatialContextService] = None,
        provider: Optional[ServiceProvider] = None
    ):
        self._provider = provider or ServiceProvider(service)

    @property
    def service(self) -> SpatialContextService:
        return self._provider.get()

    def _request_id(self, req: func.HttpRequest) -> str:
        return req.headers.get('x-request-id') or uuid.uuid4().hex[:12]

    def _parse_params(self, req: func.HttpRequest) -> ContextQueryParameters:
        """
        Raises:
            ValidationError: Missing or invalid parameters
        """
        values = {
            name: req.params.get(name)
            for name in _QUERY_PARAMS
            if req.params.get(name) not in (None, "")
        }
        return ContextQueryParameters(**values)

    def _json_response(self, data: Any, status_code: int = 200) -> func.HttpResponse:
        if hasattr(data, 'model_dump'):
            data = data.model_dump(mode='json', exclude_none=True)

        return func.HttpResponse(
            body=json.dumps(data, indent=2),
            status_code=status_code,
            mimetype="application/json"
        )

    def _error_response(
        self,
        message: str,
        status_code: int = 400,
        error_type: str = "BadRequest"
    ) -> func.HttpResponse:
        error_body = {
            "code": error_type,
            "description": message
        }
        return func.HttpResponse(
            body=json.dumps(error_body, indent=2),
            status_code=status_code,
            mimetype="application/json"
        )

    def _validation_error_response(self, e: ValidationError) -> func.HttpResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return self._error_response(f"Invalid query parameters: {problems}", 400, "BadRequest")


# ============================================================================
# ENDPOINT TRIGGERS
# ============================================================================

class LayerListTrigger(BaseContextTrigger):
    """
    Layer list trigger.

    Endpoint: GET /api/context/layers
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            layers = self.service.list_layers()
            logger.info(f"Layer list requested ({layers.count} layers)")
            return self._json_response(layers)

        except Exception as e:
            logger.error(f"Error listing layers: {e}", exc_info=True)
            return self._error_response(
                message=f"Internal server error: {str(e)}",
                status_code=500,
                error_type="InternalServerError"
            )


class LayerContextTrigger(BaseContextTrigger):
    """
    Single layer query trigger.

    Endpoint: GET /api/context/layers/{layer_key}?lat=&lon=&radius=&geometry=
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        layer_key = req.route_params.get('layer_key')
        request_id = self._request_id(req)

        try:
            params = self._parse_params(req)
            result = self.service.query_layer(layer_key, params, request_id=request_id)

            logger.info(
                f"Layer '{layer_key}' queried: {result.count} feature(s)",
                extra={'custom_dimensions': {'request_id': request_id, 'layer_key': layer_key}}
            )
            return self._json_response(result)

        except ValidationError as e:
            logger.warning(f"Invalid parameters for layer '{layer_key}': {e}")
            return self._validation_error_response(e)

        except LayerNotFoundError as e:
            logger.warning(f"Layer not found: {layer_key}")
            return self._error_response(
                message=str(e),
                status_code=404,
                error_type="NotFound"
            )

        except Exception as e:
            logger.error(f"Error querying layer '{layer_key}': {e}", exc_info=True)
            return self._error_response(
                message=f"Internal server error: {str(e)}",
                status_code=500,
                error_type="InternalServerError"
            )


class ContextTrigger(BaseContextTrigger):
    """
    Multi-layer context trigger.

    Endpoint: GET /api/context?lat=&lon=&radius=&layers=a,b&geometry=
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        request_id = self._request_id(req)

        try:
            params = self._parse_params(req)
            result = self.service.query_context(params, request_id=request_id)

            logger.info(
                f"Context queried across {len(result.layers)} layer(s)",
                extra={'custom_dimensions': {'request_id': request_id}}
            )
            return self._json_response(result)

        except ValidationError as e:
            logger.warning(f"Invalid context parameters: {e}")
            return self._validation_error_response(e)

        except LayerLimitError as e:
            return self._error_response(str(e), 400, "BadRequest")

        except LayerNotFoundError as e:
            logger.warning(f"Context query named an unknown layer: {e}")
            return self._error_response(
                message=str(e),
                status_code=404,
                error_type="NotFound"
            )

        except Exception as e:
            logger.error(f"Error in context query: {e}", exc_info=True)
            return self._error_response(
                message=f"Internal server error: {str(e)}",
                status_code=500,
                error_type="InternalServerError"
            )
