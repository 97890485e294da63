from bson import ObjectId
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..core.auth import get_current_user_oid
from ..core.config import settings
from ..core.identifiers import parse_object_id
from ..db.mongodb import get_db
from ..services import notifications
from ..utils.serialization import to_json

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    user_id: ObjectId = Depends(get_current_user_oid),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Latest notifications for the session user, newest first"""
    return to_json(await notifications.list_notifications(db, user_id))


@router.get("/count")
async def count_notifications(
    user_id: ObjectId = Depends(get_current_user_oid),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if settings.DISABLE_NOTIFICATIONS_COUNT:
        return {"count": 0}
    return {"count": await notifications.count_notifications(db, user_id)}


@router.post("/mark-read")
async def mark_read(
    user_id: ObjectId = Depends(get_current_user_oid),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    await notifications.mark_all_read(db, user_id)
    return {"ok": True}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user_id: ObjectId = Depends(get_current_user_oid),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Delete one of the session user's notifications. Deleting a missing one still succeeds."""
    cleaned = parse_object_id(notification_id, "notification ID")
    await notifications.delete_notification(db, user_id, cleaned)
    return {"ok": True}
