"""
Health endpoints for load balancers and the ``chunkdock health-check`` command.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....application.startup import ApplicationStartup
from ....infrastructure.config.models import ApplicationConfig
from ..dependencies import get_config, get_startup

router = APIRouter()


def _describe(config: ApplicationConfig) -> Dict[str, Any]:
    return {
        "name": config.name,
        "version": config.version,
        "environment": config.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def _probe(component: Any) -> Dict[str, Any]:
    # A failing probe marks the component unhealthy instead of failing the request
    try:
        return await component.check_health()  # type: ignore[no-any-return]
    except Exception as e:
        return {"healthy": False, "status": "error", "details": {"error": str(e)}}


@router.get("/")
async def health_check(config: ApplicationConfig = Depends(get_config)) -> Dict[str, Any]:
    return {"status": "healthy", "application": _describe(config)}


@router.get("/detailed")
async def detailed_health_check(
    startup: ApplicationStartup = Depends(get_startup),
    config: ApplicationConfig = Depends(get_config)
) -> Dict[str, Any]:
    """
    Probe every registered component.

    The upload manager reports its live session count here; any unhealthy
    component downgrades the overall status to ``degraded``.
    """
    components = {
        name: await _probe(component)
        for name, component in startup.components.items()
    }
    degraded = any(not report.get("healthy", True) for report in components.values())

    return {
        "status": "degraded" if degraded else "healthy",
        "application": _describe(config),
        "components": components,
    }


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    return {"alive": True, "timestamp": datetime.now(timezone.utc).isoformat()}
