import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId


class NotificationType(str, enum.Enum):
    PRAY = "pray"
    COMMENT = "comment"
    WORD_LIKE = "word_like"
    WORD_COMMENT = "word_comment"
    FAITH_STORY_LIKE = "faith_story_like"
    FAITH_STORY_COMMENT = "faith_story_comment"
    MENTION = "mention"
    FOLLOW = "follow"


@dataclass(frozen=True)
class NotificationEvent:
    """Something an actor did that may notify other users.

    Direct events name their recipient (the content owner or the followed
    user). Mention events carry the text to scan instead.
    """
    type: NotificationType
    actor_id: ObjectId
    recipient_id: Optional[ObjectId] = None
    text: Optional[str] = None
    reference_field: Optional[str] = None
    item_id: Optional[ObjectId] = None

    @classmethod
    def direct(
        cls,
        type: NotificationType,
        actor_id: ObjectId,
        recipient_id: ObjectId,
        reference_field: Optional[str] = None,
        item_id: Optional[ObjectId] = None,
    ) -> "NotificationEvent":
        return cls(
            type=type,
            actor_id=actor_id,
            recipient_id=recipient_id,
            reference_field=reference_field,
            item_id=item_id,
        )

    @classmethod
    def mentions(
        cls,
        text: str,
        actor_id: ObjectId,
        reference_field: Optional[str] = None,
        item_id: Optional[ObjectId] = None,
    ) -> "NotificationEvent":
        return cls(
            type=NotificationType.MENTION,
            actor_id=actor_id,
            text=text,
            reference_field=reference_field,
            item_id=item_id,
        )

    def document_for(self, recipient_id: ObjectId) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "userId": recipient_id,
            "actorId": self.actor_id,
            "type": self.type.value,
            "createdAt": datetime.now(timezone.utc),
            "readAt": None,
        }
        if self.reference_field and self.item_id is not None:
            doc[self.reference_field] = self.item_id
        return doc


PUSH_TITLES = {
    NotificationType.PRAY: "{actor} prayed for you",
    NotificationType.COMMENT: "{actor} commented on your prayer",
    NotificationType.WORD_LIKE: "{actor} liked your word",
    NotificationType.WORD_COMMENT: "{actor} commented on your word",
    NotificationType.FAITH_STORY_LIKE: "{actor} liked your faith story",
    NotificationType.FAITH_STORY_COMMENT: "{actor} commented on your faith story",
    NotificationType.MENTION: "{actor} mentioned you",
    NotificationType.FOLLOW: "{actor} started following you",
}
