import enum
from dataclasses import dataclass
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, constr, field_validator

from ..db.mongodb import (
    COMMENTS,
    FAITH_STORIES,
    FAITH_STORY_COMMENTS,
    PRAYERS,
    WORD_COMMENTS,
    WORDS,
)
from .notification import NotificationType


class ContentType(str, enum.Enum):
    PRAYER = "prayer"
    WORD = "word"
    FAITH_STORY = "faith_story"


class InteractionKind(str, enum.Enum):
    PRAY = "pray"
    LIKE = "like"
    SAVE = "save"


@dataclass(frozen=True)
class ContentCollection:
    label: str
    collection: str
    reference_field: str
    comment_collection: str
    comment_reference_field: str
    comment_notification: NotificationType


@dataclass(frozen=True)
class InteractionTarget:
    field: str
    state_key: str
    notification: Optional[NotificationType] = None


CONTENT_COLLECTIONS = {
    ContentType.PRAYER: ContentCollection(
        label="Prayer",
        collection=PRAYERS,
        reference_field="prayerId",
        comment_collection=COMMENTS,
        comment_reference_field="prayerId",
        comment_notification=NotificationType.COMMENT,
    ),
    ContentType.WORD: ContentCollection(
        label="Word",
        collection=WORDS,
        reference_field="wordId",
        comment_collection=WORD_COMMENTS,
        comment_reference_field="wordId",
        comment_notification=NotificationType.WORD_COMMENT,
    ),
    ContentType.FAITH_STORY: ContentCollection(
        label="Story",
        collection=FAITH_STORIES,
        reference_field="faithStoryId",
        comment_collection=FAITH_STORY_COMMENTS,
        comment_reference_field="storyId",
        comment_notification=NotificationType.FAITH_STORY_COMMENT,
    ),
}

# Saving a word is private, so it has no notification
INTERACTIONS = {
    (ContentType.PRAYER, InteractionKind.PRAY): InteractionTarget(
        field="prayedBy", state_key="prayed", notification=NotificationType.PRAY
    ),
    (ContentType.WORD, InteractionKind.LIKE): InteractionTarget(
        field="likedBy", state_key="liked", notification=NotificationType.WORD_LIKE
    ),
    (ContentType.WORD, InteractionKind.SAVE): InteractionTarget(
        field="savedBy", state_key="saved"
    ),
    (ContentType.FAITH_STORY, InteractionKind.LIKE): InteractionTarget(
        field="likedBy", state_key="liked", notification=NotificationType.FAITH_STORY_LIKE
    ),
}

# Interaction sets every new item starts with
EMPTY_SETS = {
    ContentType.PRAYER: ("prayedBy",),
    ContentType.WORD: ("likedBy", "savedBy"),
    ContentType.FAITH_STORY: ("likedBy",),
}


@dataclass(frozen=True)
class ToggleResult:
    active: bool
    count: int


# Pydantic models
class PrayerPoint(BaseModel):
    title: constr(strip_whitespace=True, max_length=120)
    description: constr(strip_whitespace=True, max_length=400)


class PrayerCreate(BaseModel):
    kind: Literal["prayer", "request"] = "prayer"
    content: constr(strip_whitespace=True, max_length=2000) = ""
    heading: constr(strip_whitespace=True, max_length=120) = ""
    prayer_points: List[PrayerPoint] = Field(default_factory=list, alias="prayerPoints", max_length=8)
    scripture_ref: constr(strip_whitespace=True, max_length=80) = Field("", alias="scriptureRef")
    is_anonymous: bool = Field(False, alias="isAnonymous")
    expires_in_days: Union[Literal[7, 30], Literal["never"]] = Field(7, alias="expiresInDays")

    class Config:
        populate_by_name = True

    def filled_points(self) -> List[PrayerPoint]:
        return [point for point in self.prayer_points if point.title and point.description]


class WordCreate(BaseModel):
    content: constr(strip_whitespace=True, min_length=1, max_length=5000)
    scripture_ref: constr(strip_whitespace=True, max_length=80) = Field("", alias="scriptureRef")

    class Config:
        populate_by_name = True


class FaithStoryCreate(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=160)
    content: constr(strip_whitespace=True, min_length=1, max_length=10000)


class CommentCreate(BaseModel):
    content: constr(strip_whitespace=True, min_length=1, max_length=1000)
    item_id: constr(min_length=1) = Field(..., alias="itemId")
    item_type: ContentType = Field(ContentType.PRAYER, alias="itemType")

    class Config:
        populate_by_name = True

    @field_validator("item_id")
    def strip_item_id(cls, v):
        return v.strip()
