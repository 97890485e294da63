"""
Notification fan-out and the per-user notification inbox.

Fan-out turns one NotificationEvent into notification documents:

  direct events   one document for the recipient (content owner or followed
                  user), unless the recipient is the actor
  mention events  one document per @username in the text that resolves to a
                  user other than the actor; unknown usernames are dropped

Request handlers never wait on fan-out. They submit events to the
NotificationDispatcher, whose background worker runs them and records any
failure on its own error channel. The owner check made by the toggle engine
before submitting is not authoritative, so under concurrent toggles a
notification can occasionally be skipped or duplicated.
"""
import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple

from bson import ObjectId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import BulkWriteError

from ..core.config import settings
from ..core.mentions import MentionBoundary, extract_mentions
from ..db.mongodb import FAITH_STORIES, NOTIFICATIONS, PRAYERS, USERS, WORDS
from ..models.notification import PUSH_TITLES, NotificationEvent, NotificationType
from .push import PushClient

logger = logging.getLogger(__name__)

INBOX_LIMIT = 50

_ITEM_REFERENCES = (("prayerId", PRAYERS), ("wordId", WORDS), ("faithStoryId", FAITH_STORIES))


class NotificationFanout:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        push: Optional[PushClient] = None,
        boundary: MentionBoundary = MentionBoundary.WORD_CHAR,
    ):
        self.db = db
        self.push = push
        self.boundary = boundary

    async def resolve_recipients(self, event: NotificationEvent) -> List[ObjectId]:
        if event.type is not NotificationType.MENTION:
            if event.recipient_id is None or event.recipient_id == event.actor_id:
                return []
            return [event.recipient_id]

        usernames = {name.lower() for name in extract_mentions(event.text or "", self.boundary)}
        if not usernames:
            return []
        users = await self.db[USERS].find(
            {"username": {"$in": sorted(usernames)}}, {"_id": 1}
        ).to_list(length=None)
        return [user["_id"] for user in users if user["_id"] != event.actor_id]

    async def fan_out(self, event: NotificationEvent) -> List[Dict[str, Any]]:
        """Write the notifications for event and push them. Returns the documents written."""
        recipients = await self.resolve_recipients(event)
        if not recipients:
            return []

        documents = [event.document_for(recipient) for recipient in recipients]
        try:
            await self.db[NOTIFICATIONS].insert_many(documents, ordered=False)
            written = documents
        except BulkWriteError as e:
            failed = {error["index"] for error in e.details.get("writeErrors", [])}
            written = [doc for index, doc in enumerate(documents) if index not in failed]
            logger.warning(
                f"{len(failed)} of {len(documents)} {event.type.value} notifications failed to insert"
            )

        if written and self.push is not None and self.push.enabled:
            await self._push(event, written)
        return written

    async def _push(self, event: NotificationEvent, written: List[Dict[str, Any]]) -> None:
        actor = await self.db[USERS].find_one({"_id": event.actor_id}, {"name": 1, "username": 1})
        actor_name = (actor or {}).get("name") or (actor or {}).get("username") or "Someone"
        title = PUSH_TITLES[event.type].format(actor=actor_name)
        body = (event.text or "")[:120]
        for doc in written:
            await self.push.send_to_user(self.db, doc["userId"], title, body, url="/notifications")


class NotificationDispatcher:
    """Queue between request handlers and fan-out.

    submit() never blocks and never raises. Failures land in ``failures``
    (most recent last) and in the log.
    """

    def __init__(
        self,
        fanout: NotificationFanout,
        maxsize: int = settings.NOTIFICATION_QUEUE_SIZE,
        failure_history: int = settings.NOTIFICATION_FAILURE_HISTORY,
    ):
        self.fanout = fanout
        self.queue: "asyncio.Queue[NotificationEvent]" = asyncio.Queue(maxsize=maxsize)
        self.failures: Deque[Tuple[NotificationEvent, BaseException]] = deque(maxlen=failure_history)
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")
            logger.info("Notification dispatcher started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        await self.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification dispatcher stopped")

    def submit(self, event: NotificationEvent) -> bool:
        """Hand an event to the worker. Returns False when it had to be dropped."""
        try:
            self.queue.put_nowait(event)
            return True
        except asyncio.QueueFull as e:
            self._record_failure(event, e)
            return False

    async def notify(self, event: NotificationEvent) -> None:
        """Fan out one event in place. Never raises."""
        try:
            await self.fanout.fan_out(event)
        except Exception as e:
            self._record_failure(event, e)

    async def join(self) -> None:
        await self.queue.join()

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self.notify(event)
            finally:
                self.queue.task_done()

    def _record_failure(self, event: NotificationEvent, error: BaseException) -> None:
        self.failures.append((event, error))
        logger.error(
            f"Notification fan-out failed for {event.type.value} event: {error!r}",
            exc_info=not isinstance(error, asyncio.QueueFull),
        )


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


# Inbox

async def list_notifications(db: AsyncIOMotorDatabase, user_id: ObjectId, limit: int = INBOX_LIMIT) -> List[Dict[str, Any]]:
    """Latest notifications for user_id with the actor and referenced item attached"""
    notifications = await db[NOTIFICATIONS].find({"userId": user_id}).sort(
        "createdAt", -1
    ).limit(limit).to_list(length=limit)
    if not notifications:
        return []

    actor_ids = list({n["actorId"] for n in notifications if n.get("actorId") is not None})
    actors = await db[USERS].find(
        {"_id": {"$in": actor_ids}}, {"name": 1, "image": 1, "username": 1}
    ).to_list(length=None)
    actors_by_id = {actor["_id"]: actor for actor in actors}

    items_by_field: Dict[str, Dict[ObjectId, Dict[str, Any]]] = {}
    for field, collection in _ITEM_REFERENCES:
        ids = list({n[field] for n in notifications if n.get(field) is not None})
        if not ids:
            continue
        docs = await db[collection].find({"_id": {"$in": ids}}, {"content": 1, "title": 1}).to_list(length=None)
        items_by_field[field] = {doc["_id"]: doc for doc in docs}

    for notification in notifications:
        notification["actor"] = actors_by_id.get(notification.get("actorId"))
        for field, _ in _ITEM_REFERENCES:
            if notification.get(field) is not None:
                notification["item"] = items_by_field.get(field, {}).get(notification[field])
    return notifications


async def count_notifications(db: AsyncIOMotorDatabase, user_id: ObjectId) -> int:
    return await db[NOTIFICATIONS].count_documents({"userId": user_id})


async def mark_all_read(db: AsyncIOMotorDatabase, user_id: ObjectId) -> int:
    result = await db[NOTIFICATIONS].update_many(
        {"userId": user_id, "readAt": None},
        {"$set": {"readAt": datetime.now(timezone.utc)}},
    )
    return result.modified_count


async def delete_notification(db: AsyncIOMotorDatabase, user_id: ObjectId, notification_id: ObjectId) -> bool:
    """Delete one notification if user_id owns it. Missing notifications are not an error."""
    result = await db[NOTIFICATIONS].delete_one({"_id": notification_id, "userId": user_id})
    return result.deleted_count > 0
