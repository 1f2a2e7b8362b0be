# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, operational dashboards
# Endpoints:
# 1. /healthz - Basic health check (always returns healthy)
# 2. /readyz - Readiness check (response schema loaded, engine constructible)
# 3. /livez - Liveness check for Kubernetes probes
#
# Health flow: Health check request -> Service status check -> Health response
# The engine has no external dependencies, so readiness only checks local components.

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/healthz")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Health status of the API
    """
    return {
        "status": "healthy",
        "timestamp": _now(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
async def readiness_check():
    """
    Readiness check endpoint.

    Checks that the response schema gate is loaded and the engine can be built.
    """
    checks = {
        "response_schema": False,
        "engine": False,
    }

    try:
        from api.schemas.validation import schema_validator
        checks["response_schema"] = bool(schema_validator.schema.get("$defs"))
    except Exception as e:
        logger.error(f"Response schema check failed: {e}")

    try:
        from services.trade_stats_engine import create_trade_stats_engine
        create_trade_stats_engine()
        checks["engine"] = True
    except Exception as e:
        logger.error(f"Engine check failed: {e}")

    is_ready = all(checks.values())

    return {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": _now(),
        "checks": checks,
        "version": settings.version
    }


@router.get("/livez")
async def liveness_check():
    """
    Liveness check endpoint.

    Used by Kubernetes liveness probes.
    """
    return {
        "status": "alive",
        "timestamp": _now()
    }
