from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from datetime import datetime
import logging

from smart_wardrobe.database import Database
from smart_wardrobe.dependencies import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


async def _database_status() -> dict:
    try:
        connected = await Database.ping()
        return {"status": "connected" if connected else "disconnected"}
    except Exception as e:
        logger.warning(f"Database ping failed: {e}")
        return {"status": "error", "error": str(e)}


@router.get("")
async def health_check(container: ServiceContainer = Depends(get_container)):
    metrics = container.metrics.snapshot()
    services = {
        "database": await _database_status(),
        "ai": {
            "status": "available",
            "preferred_service": container.vision.preferred,
            "available_services": container.vision.available_services,
            "total_analyses": metrics["total_analyses"],
            "last_analysis": metrics["last"],
        },
    }
    healthy = services["database"]["status"] == "connected"
    body = {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "version": container.settings.APP_VERSION,
        "services": services,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@router.get("/ready")
async def readiness(container: ServiceContainer = Depends(get_container)):
    database = await _database_status()
    checks = [
        {"service": "database", "ready": database["status"] == "connected"},
        {"service": "ai", "ready": bool(container.vision.available_services)},
    ]
    ready = all(c["ready"] for c in checks)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"ready": ready, "timestamp": datetime.utcnow().isoformat(), "checks": checks},
    )


@router.get("/live")
async def liveness():
    return {"alive": True, "timestamp": datetime.utcnow().isoformat()}
