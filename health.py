# ============================================================================
# MODULE CONTEXT - HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Health checks for load balancer probes and operations
# EXPORTS: get_public_health, get_detailed_health, get_app_identity, HealthStatus
# DEPENDENCIES: psycopg, config, infrastructure.village_repository, util_logger
# PATTERNS: Two-tier health checks (public/detailed)
# ============================================================================

"""
Health Check Module for Village Atlas

Two tiers:

1. Public Health (/api/health):
   - Status and timestamp only
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Database connectivity with latency
   - Village table presence and row count
   - API module availability
   - Returns 503 if unhealthy

Usage:
    from health import get_public_health, get_detailed_health

    result = get_public_health()
    # {"status": "healthy", "timestamp": "2026-10-17T12:00:00+00:00"}
"""

import time
import uuid
import psycopg
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any

from config import get_postgres_connection_string, get_app_config
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")

APP_NAME = "village-atlas"
APP_DESCRIPTION = "Village Boundary Ingestion & Query API"


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
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

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


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


# ============================================================================
# Health Check Functions
# ============================================================================

def check_database_connectivity(timeout_seconds: float = 5.0) -> CheckResult:
    """
    Run SELECT 1 against PostgreSQL.

    Critical check: failure means UNHEALTHY.
    """
    start_time = time.perf_counter()

    try:
        conn_string = get_postgres_connection_string()
        config = get_app_config()

        with psycopg.connect(conn_string, connect_timeout=int(timeout_seconds)) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message="PostgreSQL connection successful",
            details={
                "host": config.postgis_host,
                "database": config.postgis_database,
                "auth_mode": "managed_identity" if config.use_managed_identity else "password"
            }
        )

    except Exception as e:
        logger.error(f"Database connectivity check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Database connection failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_village_table(store=None) -> CheckResult:
    """
    Check that the village table exists and count its rows.

    A missing table is reported as a pass with zero villages since the
    first upload creates it.

    Args:
        store: Village store (defaults to VillageRepository)
    """
    start_time = time.perf_counter()

    try:
        if store is None:
            from infrastructure.village_repository import VillageRepository
            store = VillageRepository()

        exists = store.table_exists()
        count = store.count() if exists else 0

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message=f"{count} villages stored" if exists else "Village table not created yet",
            details={
                "table": f"{store.schema_name}.{store.table_name}",
                "exists": exists,
                "village_count": count
            }
        )

    except Exception as e:
        logger.error(f"Village table check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Village table check failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_api_modules() -> CheckResult:
    """
    Check that the ingest and query modules import and build their triggers.

    Non-critical check: failure means DEGRADED.
    """
    start_time = time.perf_counter()
    modules = {}

    try:
        from shapefile_ingest import get_upload_triggers
        modules["shapefile_ingest"] = {"available": True, "endpoints": len(get_upload_triggers())}
    except Exception as e:
        modules["shapefile_ingest"] = {"available": False, "error": str(e)}

    try:
        from village_api import get_village_triggers, get_stats_triggers
        modules["village_api"] = {
            "available": True,
            "endpoints": len(get_village_triggers()) + len(get_stats_triggers())
        }
    except Exception as e:
        modules["village_api"] = {"available": False, "error": str(e)}

    available = [name for name, status in modules.items() if status["available"]]
    if len(available) == len(modules):
        status, message = "pass", "All modules loaded"
    elif available:
        status, message = "pass", "Some modules unavailable"
    else:
        status, message = "fail", "No API modules available"

    return CheckResult(
        status=status,
        latency_ms=_elapsed_ms(start_time),
        message=message,
        details=modules
    )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_app_identity() -> Dict[str, str]:
    return {"name": APP_NAME, "description": APP_DESCRIPTION}


def get_public_health() -> Dict[str, Any]:
    """
    Minimal health status: status and timestamp only.
    """
    start_time = time.perf_counter()

    db_result = check_database_connectivity(timeout_seconds=3.0)
    status = HealthStatus.HEALTHY if db_result.status == "pass" else HealthStatus.UNHEALTHY

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(_elapsed_ms(start_time), 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health() -> Dict[str, Any]:
    """
    Full health metrics for probes and operations dashboards.

    Returns:
        Dict with overall status, per-check results and timing
    """
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    db_result = check_database_connectivity()
    checks["database"] = db_result.to_dict()
    if db_result.status == "fail":
        critical_failures.append("database")
        checks["village_table"] = CheckResult(
            status="fail", latency_ms=0, message="Skipped: database unreachable"
        ).to_dict()
        critical_failures.append("village_table")
    else:
        table_result = check_village_table()
        checks["village_table"] = table_result.to_dict()
        if table_result.status == "fail":
            critical_failures.append("village_table")

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

    total_duration = _elapsed_ms(start_time)

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures,
            'database_latency_ms': db_result.latency_ms
        }
    })

    return {
        "status": status.value,
        "app": APP_NAME,
        "description": APP_DESCRIPTION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }
