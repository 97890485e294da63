"""
Content endpoints:
  GET  /prayers            page through prayers (?userId=, ?following=true, ?cursor=, ?limit=)
  POST /prayers            create a prayer or prayer request
  GET  /prayers/{id}       fetch one prayer
  GET  /prayers/{id}/comments comments on a prayer, newest first
  GET  /words              page through words
  POST /words              post a word
  GET  /words/{id}         fetch one word
  GET  /words/{id}/comments comments on a word
  GET  /faith-stories      page through faith stories
  POST /faith-stories      share a faith story
  GET  /faith-stories/{id} fetch one faith story
  GET  /faith-stories/{id}/comments comments on a faith story
  GET  /following-feed     words and prayers from followed users
"""
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query, status

from ..core.auth import get_current_user_oid, get_optional_user_oid
from ..core.config import settings
from ..core.identifiers import parse_object_id
from ..middleware.rate_limit import RateLimiter, get_rate_limiter
from ..models.content import ContentType, FaithStoryCreate, PrayerCreate, WordCreate
from ..services.content import ContentService, get_content_service
from ..utils.pagination import DEFAULT_PAGE_SIZE
from ..utils.serialization import to_json

router = APIRouter(tags=["content"])


@router.post("/prayers", status_code=status.HTTP_201_CREATED)
async def create_prayer(
    body: PrayerCreate,
    user_id: ObjectId = Depends(get_current_user_oid),
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: ContentService = Depends(get_content_service)
):
    await limiter.enforce(f"prayer-post:{user_id}", settings.PRAYER_POST_LIMIT, settings.RATE_LIMIT_WINDOW_MS)
    return to_json(await service.create_prayer(user_id, body))


@router.get("/prayers/{prayer_id}")
async def get_prayer(prayer_id: str, service: ContentService = Depends(get_content_service)):
    item_id = parse_object_id(prayer_id, "prayer id")
    return to_json(await service.get_item(ContentType.PRAYER, item_id))


@router.post("/words", status_code=status.HTTP_201_CREATED)
async def create_word(
    body: WordCreate,
    user_id: ObjectId = Depends(get_current_user_oid),
    service: ContentService = Depends(get_content_service)
):
    return to_json(await service.create_word(user_id, body))


@router.get("/words/{word_id}")
async def get_word(word_id: str, service: ContentService = Depends(get_content_service)):
    item_id = parse_object_id(word_id, "word id")
    return to_json(await service.get_item(ContentType.WORD, item_id))


@router.post("/faith-stories", status_code=status.HTTP_201_CREATED)
async def create_faith_story(
    body: FaithStoryCreate,
    user_id: ObjectId = Depends(get_current_user_oid),
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: ContentService = Depends(get_content_service)
):
    await limiter.enforce(f"faith-story-post:{user_id}", settings.FAITH_STORY_POST_LIMIT, settings.RATE_LIMIT_WINDOW_MS)
    return to_json(await service.create_faith_story(user_id, body))


@router.get("/faith-stories/{story_id}")
async def get_faith_story(story_id: str, service: ContentService = Depends(get_content_service)):
    item_id = parse_object_id(story_id, "story id")
    return to_json(await service.get_item(ContentType.FAITH_STORY, item_id))


async def _feed(
    service: ContentService,
    content_type: ContentType,
    viewer_id: Optional[ObjectId],
    user_id: Optional[str],
    following: bool,
    cursor: Optional[str],
    limit: int,
):
    author_id = parse_object_id(user_id, "user id") if user_id else None
    page = await service.list_feed(
        content_type,
        viewer_id=viewer_id,
        author_id=author_id,
        following_only=following,
        cursor=cursor,
        limit=limit,
    )
    return to_json(page)


@router.get("/prayers")
async def list_prayers(
    user_id: Optional[str] = Query(None, alias="userId"),
    following: bool = False,
    cursor: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    viewer_id: Optional[ObjectId] = Depends(get_optional_user_oid),
    service: ContentService = Depends(get_content_service)
):
    """Prayers newest first. Anonymous prayers never show their author."""
    return await _feed(service, ContentType.PRAYER, viewer_id, user_id, following, cursor, limit)


@router.get("/words")
async def list_words(
    user_id: Optional[str] = Query(None, alias="userId"),
    following: bool = False,
    cursor: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    viewer_id: Optional[ObjectId] = Depends(get_optional_user_oid),
    service: ContentService = Depends(get_content_service)
):
    return await _feed(service, ContentType.WORD, viewer_id, user_id, following, cursor, limit)


@router.get("/faith-stories")
async def list_faith_stories(
    user_id: Optional[str] = Query(None, alias="userId"),
    following: bool = False,
    cursor: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    viewer_id: Optional[ObjectId] = Depends(get_optional_user_oid),
    service: ContentService = Depends(get_content_service)
):
    return await _feed(service, ContentType.FAITH_STORY, viewer_id, user_id, following, cursor, limit)


@router.get("/prayers/{prayer_id}/comments")
async def list_prayer_comments(prayer_id: str, service: ContentService = Depends(get_content_service)):
    item_id = parse_object_id(prayer_id, "prayer id")
    return to_json(await service.list_comments(ContentType.PRAYER, item_id))


@router.get("/words/{word_id}/comments")
async def list_word_comments(word_id: str, service: ContentService = Depends(get_content_service)):
    item_id = parse_object_id(word_id, "word id")
    return to_json(await service.list_comments(ContentType.WORD, item_id))


@router.get("/faith-stories/{story_id}/comments")
async def list_faith_story_comments(story_id: str, service: ContentService = Depends(get_content_service)):
    item_id = parse_object_id(story_id, "story id")
    return to_json(await service.list_comments(ContentType.FAITH_STORY, item_id))


@router.get("/following-feed")
async def following_feed(
    cursor: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    user_id: ObjectId = Depends(get_current_user_oid),
    service: ContentService = Depends(get_content_service)
):
    """Words and public prayers from the people the session user follows"""
    return to_json(await service.following_feed(user_id, cursor=cursor, limit=limit))
