import logging
import re
from typing import List

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ..core.errors import InvalidInputError, NotFoundError
from ..db.mongodb import USERS, get_db
from ..models.notification import NotificationEvent, NotificationType
from ..models.user import FollowResult, UserSearchResult
from .notifications import NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10
MIN_QUERY_LENGTH = 2
UNSAFE_QUERY_CHARS = re.compile(r"[^\w\s.@-]")


def clean_search_query(raw: str) -> str:
    """Lowercase a search query and keep only word characters, whitespace and .@-"""
    return UNSAFE_QUERY_CHARS.sub("", (raw or "").strip().lower())


class UserService:
    def __init__(self, db: AsyncIOMotorDatabase, dispatcher: NotificationDispatcher):
        self.db = db
        self.dispatcher = dispatcher

    async def toggle_follow(self, actor_id: ObjectId, target_id: ObjectId) -> FollowResult:
        if actor_id == target_id:
            raise InvalidInputError("Invalid user")

        users = self.db[USERS]
        actor = await users.find_one({"_id": actor_id}, {"following": 1})
        target = await users.find_one({"_id": target_id}, {"_id": 1})
        if actor is None or target is None:
            raise NotFoundError("User", str(target_id if actor else actor_id))

        was_following = target_id in (actor.get("following") or [])
        operator = "$pull" if was_following else "$addToSet"

        await users.update_one({"_id": actor_id}, {operator: {"following": target_id}})
        updated_target = await users.find_one_and_update(
            {"_id": target_id},
            {operator: {"followers": actor_id}},
            projection={"followers": 1},
            return_document=ReturnDocument.AFTER,
        )
        followers_count = len((updated_target or {}).get("followers") or [])

        if not was_following:
            self.dispatcher.submit(
                NotificationEvent.direct(NotificationType.FOLLOW, actor_id=actor_id, recipient_id=target_id)
            )

        logger.info(f"{actor_id} {'unfollowed' if was_following else 'followed'} {target_id}")
        return FollowResult(following=not was_following, followers_count=followers_count)

    async def search(self, raw_query: str) -> List[UserSearchResult]:
        query = clean_search_query(raw_query)
        if len(query) < MIN_QUERY_LENGTH:
            return []

        pattern = re.escape(query)
        cursor = self.db[USERS].find(
            {
                "$or": [
                    {"username": {"$regex": pattern, "$options": "i"}},
                    {"name": {"$regex": pattern, "$options": "i"}},
                ]
            },
            {"username": 1, "name": 1, "image": 1},
        ).limit(SEARCH_LIMIT)
        users = await cursor.to_list(length=SEARCH_LIMIT)
        return [
            UserSearchResult(
                id=str(user["_id"]),
                username=user.get("username"),
                name=user.get("name"),
                image=user.get("image"),
            )
            for user in users
        ]


def get_user_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> UserService:
    return UserService(db, dispatcher)
