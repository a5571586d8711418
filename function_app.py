# ============================================================================
# MODULE CONTEXT - AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime with the spatial context API
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, spatial_query
# ============================================================================

"""
Azure Functions Entry Point for geocontext

Registers the HTTP triggers of the spatial context API.

Architecture:
    - Context API: 3 endpoints answering containment/proximity queries
      against ArcGIS REST feature services
    - Health checks: 2 endpoints for monitoring and APIM integration
        - /api/health - Public (minimal response for external callers)
        - /api/health/detailed - Internal (full metrics for APIM probes)

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import json
import azure.functions as func
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Azure Function App
app = func.FunctionApp()

# ============================================================================
# Context API - 3 Endpoints
# ============================================================================

try:
    from spatial_query import get_context_triggers

    logger.info("Registering context API endpoints...")

    context_triggers = get_context_triggers()

    # Registered layers
    @app.route(route="context/layers", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def context_layers(req: func.HttpRequest) -> func.HttpResponse:
        return context_triggers[0]['handler'](req)

    # Single layer query
    @app.route(route="context/layers/{layer_key}", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def context_layer(req: func.HttpRequest) -> func.HttpResponse:
        return context_triggers[1]['handler'](req)

    # Multi-layer query
    @app.route(route="context", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def context_query(req: func.HttpRequest) -> func.HttpResponse:
        return context_triggers[2]['handler'](req)

    logger.info("✅ Context API registered successfully (3 endpoints)")

except ImportError as e:
    logger.warning(f"⚠️ Context API module not available: {e}")
    logger.warning("Context API will not be available")

# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check endpoint - minimal response for external callers.

    Always returns 200 - status in body indicates health.
    """
    from health import get_public_health

    result = get_public_health()

    return func.HttpResponse(
        json.dumps(result, default=str),
        mimetype="application/json",
        status_code=200,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )


@app.route(route="health/detailed", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_detailed(req: func.HttpRequest) -> func.HttpResponse:
    """
    Detailed health check endpoint - for APIM probes and operations.

    Returns 503 if unhealthy, 200 otherwise.

    SECURITY: Block this endpoint from external access via APIM policy.
    """
    from health import get_detailed_health, HealthStatus

    result = get_detailed_health()

    # Return 503 if unhealthy, 200 otherwise (healthy or degraded)
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY.value else 200

    return func.HttpResponse(
        json.dumps(result, default=str, indent=2),
        mimetype="application/json",
        status_code=status_code,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )

# ============================================================================
# Application Startup
# ============================================================================

from health import get_app_identity
_app_identity = get_app_identity()

logger.info("="*60)
logger.info(f"{_app_identity['name']} - {_app_identity['description']}")
logger.info("="*60)
logger.info("Function App initialized successfully")
logger.info("Available endpoints:")
logger.info("  - GET /api/health - Public health check (minimal)")
logger.info("  - GET /api/health/detailed - Detailed health (APIM only)")
logger.info("")
logger.info("Context API (3 endpoints):")
logger.info("  - GET /api/context/layers - Registered layers")
logger.info("  - GET /api/context/layers/{layer_key}?lat=&lon=&radius= - Query one layer")
logger.info("  - GET /api/context?lat=&lon=&radius=&layers= - Query several layers")
logger.info("="*60)
