import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..core.errors import AuthenticationError, InvalidInputError, NotFoundError
from ..db.mongodb import USERS, get_db
from ..models.content import (
    CONTENT_COLLECTIONS,
    EMPTY_SETS,
    CommentCreate,
    ContentType,
    FaithStoryCreate,
    PrayerCreate,
    WordCreate,
)
from ..models.notification import NotificationEvent
from ..utils.pagination import NEWEST_FIRST, clamp_limit, cursor_filter, encode_cursor, sort_key
from .notifications import NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)

AUTHOR_FIELDS = ("authorName", "authorUsername", "authorImage")


class ContentService:
    def __init__(self, db: AsyncIOMotorDatabase, dispatcher: NotificationDispatcher):
        self.db = db
        self.dispatcher = dispatcher

    async def _author_fields(self, user_id: ObjectId) -> Dict[str, Any]:
        author = await self.db[USERS].find_one({"_id": user_id}, {"name": 1, "username": 1, "image": 1}) or {}
        return {
            "authorName": author.get("name"),
            "authorUsername": author.get("username"),
            "authorImage": author.get("image"),
        }

    async def _insert(self, content_type: ContentType, user_id: ObjectId, fields: Dict[str, Any], text: str) -> Dict[str, Any]:
        """Store a new item with empty interaction sets and notify anyone it mentions"""
        content = CONTENT_COLLECTIONS[content_type]
        now = datetime.now(timezone.utc)
        document = {
            **fields,
            "userId": user_id,
            **await self._author_fields(user_id),
            "createdAt": now,
            "updatedAt": now,
        }
        for field in EMPTY_SETS[content_type]:
            document[field] = []

        result = await self.db[content.collection].insert_one(document)
        document["_id"] = result.inserted_id
        logger.info(f"{content.label} created: {result.inserted_id} by user {user_id}")

        if text:
            self.dispatcher.submit(
                NotificationEvent.mentions(
                    text,
                    actor_id=user_id,
                    reference_field=content.reference_field,
                    item_id=result.inserted_id,
                )
            )
        return document

    async def create_prayer(self, user_id: ObjectId, body: PrayerCreate) -> Dict[str, Any]:
        points = body.filled_points()
        if body.kind == "prayer" and not body.content:
            raise InvalidInputError("Content is required")
        if body.kind == "request" and not points:
            raise InvalidInputError("Add at least one prayer point (title + description)")

        expires_at: Optional[datetime] = None
        if body.expires_in_days != "never":
            expires_at = datetime.now(timezone.utc) + timedelta(days=body.expires_in_days)

        fields = {
            "kind": body.kind,
            "content": "" if body.kind == "request" else body.content,
            "heading": body.heading,
            "prayerPoints": [point.model_dump() for point in points],
            "scriptureRef": body.scripture_ref or None,
            "isAnonymous": body.is_anonymous,
            "expiresAt": expires_at,
        }
        text = " ".join([body.heading, fields["content"]] + [p.description for p in points]).strip()
        return await self._insert(ContentType.PRAYER, user_id, fields, text)

    async def create_word(self, user_id: ObjectId, body: WordCreate) -> Dict[str, Any]:
        fields = {"content": body.content, "scriptureRef": body.scripture_ref or None}
        return await self._insert(ContentType.WORD, user_id, fields, body.content)

    async def create_faith_story(self, user_id: ObjectId, body: FaithStoryCreate) -> Dict[str, Any]:
        fields = {"title": body.title, "content": body.content}
        return await self._insert(ContentType.FAITH_STORY, user_id, fields, body.content)

    async def get_item(self, content_type: ContentType, item_id: ObjectId) -> Dict[str, Any]:
        content = CONTENT_COLLECTIONS[content_type]
        item = await self.db[content.collection].find_one({"_id": item_id})
        if item is None:
            raise NotFoundError(content.label, str(item_id))
        return item

    async def add_comment(self, user_id: ObjectId, item_id: ObjectId, body: CommentCreate) -> Dict[str, Any]:
        """Store a comment, then notify the item owner and anyone mentioned"""
        content = CONTENT_COLLECTIONS[body.item_type]
        item = await self.db[content.collection].find_one({"_id": item_id}, {"userId": 1})
        if item is None:
            raise NotFoundError(content.label, str(item_id))

        comment = {
            "content": body.content,
            "userId": user_id,
            content.comment_reference_field: item_id,
            "createdAt": datetime.now(timezone.utc),
        }
        result = await self.db[content.comment_collection].insert_one(comment)
        comment["_id"] = result.inserted_id

        owner_id = item.get("userId")
        if owner_id is not None and owner_id != user_id:
            self.dispatcher.submit(
                NotificationEvent.direct(
                    content.comment_notification,
                    actor_id=user_id,
                    recipient_id=owner_id,
                    reference_field=content.reference_field,
                    item_id=item_id,
                )
            )
        self.dispatcher.submit(
            NotificationEvent.mentions(
                body.content,
                actor_id=user_id,
                reference_field=content.reference_field,
                item_id=item_id,
            )
        )
        return comment

    # Reading

    async def _users_by_id(self, user_ids) -> Dict[ObjectId, Dict[str, Any]]:
        ids = list({user_id for user_id in user_ids if user_id is not None})
        if not ids:
            return {}
        users = await self.db[USERS].find(
            {"_id": {"$in": ids}}, {"name": 1, "image": 1, "username": 1}
        ).to_list(length=None)
        return {user["_id"]: user for user in users}

    async def _following(self, user_id: ObjectId) -> List[ObjectId]:
        user = await self.db[USERS].find_one({"_id": user_id}, {"following": 1}) or {}
        return list(user.get("following") or [])

    async def list_comments(self, content_type: ContentType, item_id: ObjectId) -> List[Dict[str, Any]]:
        """Comments on one item, newest first, each with its author's name and image"""
        content = CONTENT_COLLECTIONS[content_type]
        comments = await self.db[content.comment_collection].find(
            {content.comment_reference_field: item_id}
        ).sort("createdAt", -1).to_list(length=None)

        authors = await self._users_by_id(comment.get("userId") for comment in comments)
        for comment in comments:
            author = authors.get(comment.get("userId"))
            comment["user"] = None
            if author:
                comment["user"] = {"_id": author["_id"], "name": author.get("name"), "image": author.get("image")}
        return comments

    async def _decorate(self, content_type: ContentType, items: List[Dict[str, Any]], viewer_id: Optional[ObjectId]) -> None:
        """Attach author, comment count and ownership to feed items, hiding anonymous authors"""
        content = CONTENT_COLLECTIONS[content_type]
        authors = await self._users_by_id(item.get("userId") for item in items if not item.get("isAnonymous"))

        for item in items:
            is_owner = viewer_id is not None and item.get("userId") == viewer_id
            item["isOwner"] = is_owner
            item["commentCount"] = await self.db[content.comment_collection].count_documents(
                {content.comment_reference_field: item["_id"]}
            )
            if item.get("isAnonymous"):
                item["user"] = None
                for field in AUTHOR_FIELDS:
                    item.pop(field, None)
                if not is_owner:
                    item["userId"] = None
                continue

            author = authors.get(item.get("userId"))
            if author:
                item["user"] = {"name": author.get("name"), "image": author.get("image"), "username": author.get("username")}
            else:
                item["user"] = {
                    "name": item.get("authorName"),
                    "image": item.get("authorImage"),
                    "username": item.get("authorUsername"),
                }

    async def list_feed(
        self,
        content_type: ContentType,
        viewer_id: Optional[ObjectId] = None,
        author_id: Optional[ObjectId] = None,
        following_only: bool = False,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """One page of items, newest first. Returns {"items", "nextCursor"}."""
        content = CONTENT_COLLECTIONS[content_type]
        limit = clamp_limit(limit)

        conditions: List[Dict[str, Any]] = []
        if author_id is not None:
            conditions.append({"userId": author_id})
            if viewer_id != author_id:
                conditions.append({"isAnonymous": {"$ne": True}})
        if following_only:
            if viewer_id is None:
                raise AuthenticationError()
            conditions.append({"userId": {"$in": await self._following(viewer_id)}})
        page_filter = cursor_filter(cursor)
        if page_filter:
            conditions.append(page_filter)

        query = {"$and": conditions} if conditions else {}
        documents = await self.db[content.collection].find(query).sort(NEWEST_FIRST).limit(limit + 1).to_list(
            length=limit + 1
        )

        items = documents[:limit]
        await self._decorate(content_type, items, viewer_id)
        next_cursor = encode_cursor(items[-1]) if len(documents) > limit else None
        return {"items": items, "nextCursor": next_cursor}

    async def following_feed(
        self, viewer_id: ObjectId, cursor: Optional[str] = None, limit: Optional[int] = None
    ) -> Dict[str, Any]:
        """Words and public prayers from followed users, merged newest first"""
        limit = clamp_limit(limit)
        following = await self._following(viewer_id)
        if not following:
            return {"items": [], "nextCursor": None}

        page_filter = cursor_filter(cursor)
        sources = (
            (ContentType.WORD, {"userId": {"$in": following}, **page_filter}),
            (ContentType.PRAYER, {"userId": {"$in": following}, "isAnonymous": {"$ne": True}, **page_filter}),
        )
        combined = []
        for content_type, query in sources:
            collection = self.db[CONTENT_COLLECTIONS[content_type].collection]
            documents = await collection.find(query).sort(NEWEST_FIRST).limit(limit + 1).to_list(length=limit + 1)
            combined.extend((content_type, document) for document in documents)
        combined.sort(key=lambda entry: sort_key(entry[1]), reverse=True)

        page = combined[:limit]
        for content_type in (ContentType.WORD, ContentType.PRAYER):
            await self._decorate(content_type, [doc for kind, doc in page if kind is content_type], viewer_id)

        next_cursor = encode_cursor(page[-1][1]) if len(combined) > limit else None
        items = [{"type": kind.value, kind.value: document} for kind, document in page]
        return {"items": items, "nextCursor": next_cursor}


def get_content_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ContentService:
    return ContentService(db, dispatcher)
