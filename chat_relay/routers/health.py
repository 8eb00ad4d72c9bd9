"""Health check endpoints."""
from datetime import datetime, timezone
from fastapi import APIRouter
from fastapi.responses import JSONResponse
import logging

from ..core.config import settings
from ..core.database import health_check_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])

@router.get("/")
async def root():
    return {"message": "Chat Service API is running!", "version": settings.app_version}

@router.get("/health")
async def health_check():
    """Basic liveness check"""
    return {"status": "UP", "timestamp": datetime.now(timezone.utc).isoformat()}

@router.get("/health/db")
async def database_health():
    """Database health check"""
    if await health_check_db():
        return {"status": "UP", "database": "reachable"}
    return JSONResponse(status_code=503, content={"status": "DOWN", "database": "unreachable"})
