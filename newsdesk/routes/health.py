"""
Newsdesk Health Check Routes
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
from sqlalchemy import text
from sqlalchemy.orm import Session
import psutil

from ..config import get_settings
from ..database import get_db
from ..timeutils import utcnow
from ..worker.scheduler import task_scheduler

router = APIRouter(prefix="/api/health", tags=["health"])

settings = get_settings()

START_TIME = utcnow()


def get_uptime() -> str:
    """Get process uptime as human-readable string"""
    delta = utcnow() - START_TIME
    hours, remainder = divmod(delta.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if delta.days > 0:
        return f"{delta.days}d {hours}h {minutes}m"
    elif hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    else:
        return f"{minutes}m {seconds}s"


def check_database(db: Session) -> Dict[str, Any]:
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


def check_process() -> Dict[str, Any]:
    process = psutil.Process()
    memory = process.memory_info()
    return {
        "memory_mb": round(memory.rss / (1024 * 1024), 1),
        "cpu_percent": process.cpu_percent(interval=None),
        "threads": process.num_threads(),
    }


@router.get("")
def health_check(db: Session = Depends(get_db)):
    """Health check endpoint for load balancers and monitoring."""
    database = check_database(db)
    return {
        "status": "healthy" if database["status"] == "healthy" else "degraded",
        "environment": settings.environment,
        "version": "1.0.0",
        "uptime": get_uptime(),
        "database": database,
        "scheduler": {"running": task_scheduler.running},
        "process": check_process(),
    }
