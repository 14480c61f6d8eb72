# ============================================================================
# MODULE CONTEXT - AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime with upload, village and stats APIs
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, shapefile_ingest, village_api, health
# ============================================================================

"""
Azure Functions Entry Point for Village Atlas

Registers every HTTP trigger:
    - Upload API: 3 endpoints (shapefile ingest, metadata, structure validation)
    - Village API: 9 endpoints (viewport, list, search, regions, lookup, delete)
    - Stats API: 4 endpoints (totals, dashboard, summary, comparative)
    - Health checks: 2 endpoints
        - /api/health - Public (minimal response)
        - /api/health/detailed - Internal (full metrics)

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import json
import logging
from typing import Any, Callable, Dict, List

import azure.functions as func

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = func.FunctionApp()


def _function_name(route: str, methods: List[str]) -> str:
    """Unique function name from route and method, e.g. villages_districts_state_get."""
    cleaned = route.replace("{", "").replace("}", "").replace(":int", "")
    cleaned = cleaned.replace("/", "_").replace("-", "_")
    return f"{cleaned}_{methods[0].lower()}"


def _bind(handler: Callable[[func.HttpRequest], func.HttpResponse]):
    def endpoint(req: func.HttpRequest) -> func.HttpResponse:
        return handler(req)
    return endpoint


def _register(triggers: List[Dict[str, Any]]) -> None:
    for trigger in triggers:
        endpoint = app.route(
            route=trigger['route'],
            methods=trigger['methods'],
            auth_level=func.AuthLevel.ANONYMOUS
        )(_bind(trigger['handler']))
        app.function_name(name=_function_name(trigger['route'], trigger['methods']))(endpoint)


# ============================================================================
# Upload API - 3 Endpoints
# ============================================================================

try:
    from shapefile_ingest import get_upload_triggers

    logger.info("Registering Upload API endpoints...")
    _register(get_upload_triggers())
    logger.info("✅ Upload API registered successfully (3 endpoints)")

except ImportError as e:
    logger.warning(f"⚠️ Shapefile ingest module not available: {e}")
    logger.warning("Upload API will not be available")

# ============================================================================
# Village + Stats API - 13 Endpoints
# ============================================================================

try:
    from village_api import VillageService, get_village_triggers, get_stats_triggers

    logger.info("Registering Village API endpoints...")
    _village_service = VillageService()
    _register(get_village_triggers(_village_service))
    _register(get_stats_triggers(_village_service))
    logger.info("✅ Village API registered successfully (13 endpoints)")

except ImportError as e:
    logger.warning(f"⚠️ Village API module not available: {e}")
    logger.warning("Village API will not be available")

# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check endpoint.

    Always returns 200; status in body indicates health.
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
    Detailed health check endpoint.

    Returns 503 if unhealthy, 200 otherwise (healthy or degraded).
    """
    from health import get_detailed_health, HealthStatus

    result = get_detailed_health()
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
logger.info("  - GET /api/health/detailed - Detailed health")
logger.info("")
logger.info("Upload API (3 endpoints):")
logger.info("  - POST /api/upload/shapefile - Ingest a village shapefile")
logger.info("  - POST /api/upload/metadata - Feature count, fields, time estimate")
logger.info("  - POST /api/upload/validate - Structure check")
logger.info("")
logger.info("Village API (9 endpoints):")
logger.info("  - GET /api/villages - Filtered list")
logger.info("  - GET /api/villages/bounds - Viewport query")
logger.info("  - GET /api/villages/search - Name search")
logger.info("  - GET /api/villages/states - States")
logger.info("  - GET /api/villages/districts/{state} - Districts")
logger.info("  - GET /api/villages/subdistricts/{state}/{district} - Subdistricts")
logger.info("  - GET /api/villages/population-distribution - Bucket counts")
logger.info("  - GET /api/villages/{id} - Single village")
logger.info("  - DELETE /api/villages/all - Delete all villages")
logger.info("")
logger.info("Stats API (4 endpoints):")
logger.info("  - GET /api/stats - Region totals")
logger.info("  - GET /api/stats/dashboard - Totals, distribution, insights")
logger.info("  - GET /api/stats/summary - State and district totals")
logger.info("  - POST /api/stats/comparative - Region comparison")
logger.info("="*60)
