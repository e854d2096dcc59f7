"""Health check endpoints for load balancers and monitoring."""

import os
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.database import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Liveness: 200 whenever the process is serving. No DB round-trip."""
    return {
        "status": "ok",
        "service": "CareOps",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": os.getenv("ENVIRONMENT", "development"),
    }


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness: 200 only when the database answers, else 503."""
    checks = {"service": "ok", "database": "unknown"}
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        checks["database"] = f"error: {str(e)[:100]}"

    healthy = checks["database"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": "CareOps",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
