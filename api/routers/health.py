# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, operational dashboards
# Endpoints:
# 1. /healthz - Basic health check (always returns healthy)
# 2. /readyz - Readiness check with database and mapping checks, active job count
# 3. /livez - Liveness check for Kubernetes probes
#
# Readiness flow: Readiness check -> Database connectivity + register mappings -> Ready/Not ready

from fastapi import APIRouter
import logging
from datetime import datetime
from typing import List

from db.session import check_db_connection
from core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Health status of the API
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
async def readiness_check():
    """
    Readiness check endpoint.

    The service accepts uploads once the database answers and the register
    header mappings are loaded. Running classification jobs are reported
    but do not affect readiness.

    Returns:
        Readiness status with detailed checks
    """
    from api.dependencies import get_job_registry, get_register_mappings

    checks = {"database": check_db_connection(), "register_mappings": False}
    document_types: List[str] = []

    try:
        document_types = sorted(get_register_mappings())
        checks["register_mappings"] = bool(document_types)
    except Exception as e:
        logger.error(f"Register mapping check failed: {e}")

    registry = get_job_registry()
    snapshots = [registry.progress(handle) for handle in registry.handles()]
    active_jobs = sum(1 for progress in snapshots if progress is not None and not progress.finished)

    return {
        "status": "ready" if all(checks.values()) else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": checks,
        "document_types": document_types,
        "active_jobs": active_jobs,
        "version": settings.version
    }


@router.get("/livez")
async def liveness_check():
    """
    Liveness check endpoint.

    Returns:
        Liveness status
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }
