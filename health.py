# ============================================================================
# MODULE CONTEXT - HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Health checks for APIM integration and monitoring
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: get_public_health, get_detailed_health, get_app_identity, HealthStatus
# DEPENDENCIES: config, util_logger, spatial_query, services.feature_service_client
# PATTERNS: Two-tier health checks (public/detailed) for APIM
# ============================================================================

"""
Health Check Module for geocontext

Two-tier health monitoring:

1. Public Health (/api/health):
   - Minimal response: status and timestamp
   - Healthy when the layer catalog loads
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Layer catalog (critical)
   - Upstream feature service reachability, up to 5 service roots (non-critical)
   - API module import (non-critical)
   - Returns 503 if unhealthy

Usage:
    from health import get_public_health, get_detailed_health

    result = get_public_health()
    # {"status": "healthy", "timestamp": "2026-10-18T12:00:00Z"}
"""

import time
import uuid
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

from config import get_app_config
from util_logger import LoggerFactory, ComponentType

# Create module logger
logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")

MAX_UPSTREAM_PROBES = 5


# ============================================================================
# Health Status Enum
# ============================================================================

class HealthStatus(str, Enum):
    """Health status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"      # Non-critical components failing
    UNHEALTHY = "unhealthy"    # Critical components failing


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class CheckResult:
    """Result of a single health check."""
    status: str              # "pass" or "fail"
    latency_ms: float        # Time taken for check
    message: str             # Human-readable status message
    details: Optional[Dict[str, Any]] = None  # Additional details

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result = {
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


def get_app_identity() -> Dict[str, str]:
    """Name and description reported at startup and by detailed health."""
    return {
        "name": get_app_config().app_name,
        "description": "Spatial Containment & Proximity Context API"
    }


# ============================================================================
# Health Check Functions
# ============================================================================

def check_layer_catalog(registry=None) -> CheckResult:
    """
    Check that the layer catalog loads.

    This is a critical check - failure means UNHEALTHY status.
    """
    start_time = time.perf_counter()

    try:
        if registry is None:
            from spatial_query.registry import get_layer_registry
            registry = get_layer_registry()

        layer_count = len(registry)
        latency_ms = (time.perf_counter() - start_time) * 1000

        if layer_count == 0:
            return CheckResult(
                status="fail",
                latency_ms=latency_ms,
                message="Layer catalog is empty"
            )

        return CheckResult(
            status="pass",
            latency_ms=latency_ms,
            message=f"{layer_count} layers registered",
            details={
                "layer_count": layer_count,
                "catalog_file": get_app_config().layer_catalog_path,
                "sample_layers": registry.keys()[:5]
            }
        )

    except Exception as e:
        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.error(f"Layer catalog check failed: {e}")

        return CheckResult(
            status="fail",
            latency_ms=latency_ms,
            message=f"Layer catalog failed to load: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_upstream_services(registry=None, client=None) -> CheckResult:
    """
    Probe distinct upstream service roots with ``?f=json``.

    This is a non-critical check - failure means DEGRADED status.
    A single unreachable service is reported but still passes.
    """
    start_time = time.perf_counter()
    owns_client = client is None

    try:
        if registry is None:
            from spatial_query.registry import get_layer_registry
            registry = get_layer_registry()
        if client is None:
            from services.feature_service_client import FeatureServiceClient
            config = get_app_config()
            client = FeatureServiceClient(
                timeout=min(config.feature_service_timeout, 5.0),
                user_agent=config.feature_service_user_agent
            )

        service_urls: List[str] = []
        for layer in registry.list_layers():
            if layer.service_url not in service_urls:
                service_urls.append(layer.service_url)
        service_urls = service_urls[:MAX_UPSTREAM_PROBES]

        services = {}
        reachable = 0
        for url in service_urls:
            probe_start = time.perf_counter()
            response = client.get_service_info(url)
            services[url] = {
                "reachable": response.success,
                "latency_ms": round((time.perf_counter() - probe_start) * 1000, 2)
            }
            if response.success:
                reachable += 1
            else:
                services[url]["error"] = response.error

        latency_ms = (time.perf_counter() - start_time) * 1000

        if not service_urls:
            status, message = "pass", "No upstream services configured"
        elif reachable == 0:
            status, message = "fail", "No upstream services reachable"
        else:
            status, message = "pass", f"{reachable}/{len(service_urls)} upstream services reachable"

        return CheckResult(
            status=status,
            latency_ms=latency_ms,
            message=message,
            details={"services": services}
        )

    except Exception as e:
        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.error(f"Upstream service check failed: {e}")

        return CheckResult(
            status="fail",
            latency_ms=latency_ms,
            message=f"Upstream service check failed: {type(e).__name__}",
            details={"error": str(e)}
        )

    finally:
        if owns_client and client is not None:
            client.close()


def check_api_modules() -> CheckResult:
    """
    Check API module availability.

    Verifies spatial_query can be imported and exposes its triggers.
    This is a non-critical check - failure means DEGRADED status.
    """
    start_time = time.perf_counter()

    try:
        from spatial_query import get_context_triggers
        triggers = get_context_triggers()
        latency_ms = (time.perf_counter() - start_time) * 1000

        return CheckResult(
            status="pass",
            latency_ms=latency_ms,
            message="All modules loaded",
            details={"spatial_query": {"available": True, "endpoints": len(triggers)}}
        )

    except Exception as e:
        latency_ms = (time.perf_counter() - start_time) * 1000

        return CheckResult(
            status="fail",
            latency_ms=latency_ms,
            message="No API modules available",
            details={"spatial_query": {"available": False, "error": str(e)}}
        )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_public_health(registry=None) -> Dict[str, Any]:
    """
    Get minimal health status for public endpoint.

    Returns only status and timestamp - no internal details.

    Returns:
        Dict with status and timestamp only
    """
    start_time = time.perf_counter()

    catalog_result = check_layer_catalog(registry)

    if catalog_result.status == "pass":
        status = HealthStatus.HEALTHY
    else:
        status = HealthStatus.UNHEALTHY

    total_duration = (time.perf_counter() - start_time) * 1000

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health(registry=None, client=None) -> Dict[str, Any]:
    """
    Get detailed health status for APIM probes and operations.

    SECURITY NOTE: Block this endpoint from external access via APIM policy.

    Args:
        registry: Layer registry (singleton if not provided)
        client: FeatureServiceClient used for upstream probes

    Returns:
        Dict with full health metrics
    """
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    # Critical: layer catalog
    catalog_result = check_layer_catalog(registry)
    checks["layer_catalog"] = catalog_result.to_dict()
    if catalog_result.status == "fail":
        critical_failures.append("layer_catalog")

    # Non-critical: upstream services (skipped when the catalog is broken)
    if catalog_result.status == "pass":
        upstream_result = check_upstream_services(registry, client)
        checks["upstream_services"] = upstream_result.to_dict()
        if upstream_result.status == "fail":
            non_critical_failures.append("upstream_services")

    # Non-critical: API modules
    modules_result = check_api_modules()
    checks["api_modules"] = modules_result.to_dict()
    if modules_result.status == "fail":
        non_critical_failures.append("api_modules")

    if critical_failures:
        status = HealthStatus.UNHEALTHY
    elif non_critical_failures:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    total_duration = (time.perf_counter() - start_time) * 1000

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures
        }
    })

    identity = get_app_identity()
    return {
        "status": status.value,
        "app": identity["name"],
        "description": identity["description"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }
