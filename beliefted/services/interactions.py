"""
Toggle interactions (pray, like, save) on prayers, words and faith stories.

An interaction is membership of the user id in a set field of the item. The
flip is a single atomic $addToSet or $pull keyed by the item id, so concurrent
togglers converge on the right membership whatever the interleaving. The
read that decides whether the flip is a first-time interaction (and so
whether to notify) happens before the update and is only best-effort.
"""
import logging
from typing import Optional

from bson import ObjectId
from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ..core.errors import AuthenticationError, InvalidInputError, NotFoundError
from ..db.mongodb import get_db
from ..models.content import (
    CONTENT_COLLECTIONS,
    INTERACTIONS,
    ContentType,
    InteractionKind,
    ToggleResult,
)
from ..models.notification import NotificationEvent
from .notifications import NotificationDispatcher, get_dispatcher

logger = logging.getLogger(__name__)


class InteractionService:
    def __init__(self, db: AsyncIOMotorDatabase, dispatcher: NotificationDispatcher):
        self.db = db
        self.dispatcher = dispatcher

    async def toggle(
        self,
        content_type: ContentType,
        item_id: ObjectId,
        user_id: Optional[ObjectId],
        kind: InteractionKind,
    ) -> ToggleResult:
        if user_id is None:
            raise AuthenticationError()

        target = INTERACTIONS.get((content_type, kind))
        if target is None:
            raise InvalidInputError(f"Cannot {kind.value} a {content_type.value}")
        content = CONTENT_COLLECTIONS[content_type]
        collection = self.db[content.collection]

        item = await collection.find_one({"_id": item_id}, {"userId": 1, target.field: 1})
        if item is None:
            raise NotFoundError(content.label, str(item_id))

        was_active = user_id in (item.get(target.field) or [])
        operator = "$pull" if was_active else "$addToSet"

        updated = await collection.find_one_and_update(
            {"_id": item_id},
            {operator: {target.field: user_id}},
            projection={target.field: 1},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFoundError(content.label, str(item_id))
        count = len(updated.get(target.field) or [])

        owner_id = item.get("userId")
        if not was_active and target.notification and owner_id is not None and owner_id != user_id:
            self.dispatcher.submit(
                NotificationEvent.direct(
                    target.notification,
                    actor_id=user_id,
                    recipient_id=owner_id,
                    reference_field=content.reference_field,
                    item_id=item_id,
                )
            )

        logger.info(f"{kind.value} on {content_type.value} {item_id} by {user_id}: active={not was_active} count={count}")
        return ToggleResult(active=not was_active, count=count)


def get_interaction_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> InteractionService:
    return InteractionService(db, dispatcher)
