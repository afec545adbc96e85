"""Health check endpoints."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
import logging

from ..core.config import settings
from ..core.database import health_check_db
from ..utils.responses import error_response, success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/")
async def health_check():
    """Basic health check"""
    return success_response({
        "status": "healthy",
        "service": "Yggdrasil Planning API",
        "version": settings.app_version,
        "environment": settings.environment,
    })


@router.get("/db-health")
async def database_health():
    """Database connectivity check"""
    if await health_check_db():
        return success_response({"status": "healthy", "database": "connected"})
    logger.error("Database health check reported unhealthy")
    return JSONResponse(
        status_code=503,
        content=error_response("Database unreachable", data={"status": "unhealthy"}),
    )
