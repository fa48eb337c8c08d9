from fastapi import APIRouter, HTTPException
from app.db import get_db
from app.services.calendar import utcnow
from app.services.cancellation_cleanup import cancellation_cleanup_service

router = APIRouter()

@router.get("/health")
async def health_check():
    """
    Basic health check endpoint for production monitoring
    """
    health_status = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": "1.0.0",
        "checks": {}
    }

    # Database connectivity check
    try:
        await get_db().command("ping")
        health_status["checks"]["database"] = {"status": "healthy"}
    except Exception as e:
        health_status["checks"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"

    health_status["checks"]["cancellation_cleanup"] = {
        "status": "running" if cancellation_cleanup_service.is_running else "stopped",
        "interval_minutes": cancellation_cleanup_service.cleanup_interval_minutes
    }

    # 200 but with warnings when degraded
    return health_status

@router.get("/health/ready")
async def readiness_check():
    """
    Kubernetes readiness probe endpoint
    """
    try:
        await get_db().command("ping")
        return {
            "status": "ready",
            "timestamp": utcnow().isoformat()
        }
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database not ready: {e}"
        )

@router.get("/health/live")
async def liveness_check():
    """
    Kubernetes liveness probe endpoint
    """
    return {
        "status": "alive",
        "timestamp": utcnow().isoformat()
    }
