import os
import platform
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.database import check_db_connection, get_db
from ..core.middleware import request_metrics
from ..models.task import Task, TaskStatus

try:
    import resource
except ImportError:  # Windows
    resource = None

settings = get_settings()

router = APIRouter()
metrics_router = APIRouter()


def _base_health() -> Dict[str, Any]:
    db_healthy = check_db_connection()
    return {
        "status": "OK" if db_healthy else "degraded",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "database": "connected" if db_healthy else "disconnected",
        "uptime": request_metrics.uptime,
        "timestamp": time.time(),
    }


@router.get("")
async def health_check():
    """Health check endpoint"""
    return _base_health()


@router.get("/detailed")
async def detailed_health_check():
    """Health check with process and runtime details"""
    health = _base_health()
    health["runtime"] = {
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "pid": os.getpid(),
    }
    if resource is not None:
        # ru_maxrss is kilobytes on Linux
        health["memory"] = {"max_rss_kb": resource.getrusage(resource.RUSAGE_SELF).ru_maxrss}
    return health


@router.get("/ready")
async def readiness_probe():
    if check_db_connection():
        return {"status": "Ready"}
    return JSONResponse(status_code=503, content={"status": "Not Ready"})


@router.get("/live")
async def liveness_probe():
    return {"status": "Alive"}


@metrics_router.get("/metrics")
def get_metrics(db: Session = Depends(get_db)):
    """Request counters and task totals"""
    total = db.query(func.count(Task.id)).scalar() or 0
    completed = db.query(func.count(Task.id)).filter(
        Task.status == TaskStatus.COMPLETED.value
    ).scalar() or 0
    return {
        "uptime": request_metrics.uptime,
        "requests": request_metrics.snapshot(),
        "tasks": {
            "total": total,
            "completed": completed,
            "pending": total - completed,
        },
        "timestamp": time.time(),
    }
