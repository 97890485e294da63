from datetime import datetime, timezone
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from .. import __version__
from ..db.mongodb import get_db
from ..services.notifications import NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    database: str
    dispatcher: Optional[str] = None
    dispatcher_failures: int = 0


@router.get("", response_model=HealthResponse)
async def health_check(
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """Basic health check endpoint"""
    try:
        await db.command("ping")
        database = "ok"
    except Exception as e:
        logger.error(f"Health check database ping failed: {str(e)}")
        database = "unavailable"

    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=database,
        dispatcher="running" if dispatcher.running else "stopped",
        dispatcher_failures=len(dispatcher.failures),
    )
