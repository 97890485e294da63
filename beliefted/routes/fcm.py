from bson import ObjectId
from fastapi import APIRouter, Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..core.auth import get_current_user_oid
from ..core.errors import InvalidInputError
from ..db.mongodb import get_db
from ..models.user import FcmTokenRequest
from ..services.push import PushClient, get_push_client, register_token, unregister_token

router = APIRouter(prefix="/fcm", tags=["push"])


@router.post("/register")
async def register(
    body: FcmTokenRequest,
    request: Request,
    user_id: ObjectId = Depends(get_current_user_oid),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """Attach a device push token to the session user"""
    if not body.token:
        raise InvalidInputError("Invalid token")
    await register_token(db, user_id, body.token, request.headers.get("user-agent"))
    return {"ok": True}


@router.post("/unregister")
async def unregister(
    body: FcmTokenRequest,
    user_id: ObjectId = Depends(get_current_user_oid),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    if not body.token:
        raise InvalidInputError("Invalid token")
    await unregister_token(db, user_id, body.token)
    return {"ok": True}


@router.post("/test")
async def send_test(
    user_id: ObjectId = Depends(get_current_user_oid),
    db: AsyncIOMotorDatabase = Depends(get_db),
    push: PushClient = Depends(get_push_client)
):
    """Send a test push to every device of the session user"""
    sent = await push.send_to_user(db, user_id, "Beliefted", "Push notifications are working.", url="/")
    return {"ok": True, "sent": sent}
