"""Health check API endpoints for monitoring and load balancer integration."""
import logging
from typing import Dict, Any
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Create the FastAPI router
router = APIRouter()


@router.get("/health")
def basic_health_check() -> Dict[str, Any]:
    """Basic health check that returns system status."""
    return {
        "status": "healthy",
        "message": "Service is operational",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request) -> Dict[str, Any]:
    """Per-chain RPC status. A chain that does not answer only degrades the service."""
    provider = getattr(request.app.state, "blockchain_provider", None)
    chains: Dict[str, Any] = {}
    if provider is not None:
        chains = await provider.get_all_chain_health()

    healthy = sum(1 for check in chains.values() if check.get("status") == "healthy")
    status = "healthy" if chains and healthy == len(chains) else "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "chains": chains,
        "summary": {
            "total": len(chains),
            "healthy": healthy,
            "unhealthy": len(chains) - healthy
        }
    }


@router.get("/health/live")
def liveness_probe() -> Dict[str, Any]:
    """Kubernetes liveness probe."""
    return {
        "status": "alive",
        "message": "Application is responsive"
    }


@router.get("/health/ready")
def readiness_probe(request: Request):
    """Kubernetes readiness probe."""
    if getattr(request.app.state, "shield_agent", None) is None:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "message": "Shield agent not initialized"}
        )
    return {
        "status": "ready",
        "message": "Application is ready to serve traffic"
    }
