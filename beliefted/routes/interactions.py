"""
Interaction endpoints:
  POST /prayers/{id}/pray      toggle praying for a prayer
  POST /words/{id}/like        toggle liking a word
  POST /words/{id}/save        toggle saving a word
  POST /faith-stories/{id}/like toggle liking a faith story
  POST /comments               comment on a prayer, word or faith story
"""
import logging

from bson import ObjectId
from fastapi import APIRouter, Depends, status

from ..core.auth import get_current_user_oid
from ..core.config import settings
from ..core.identifiers import parse_object_id
from ..middleware.rate_limit import RateLimiter, get_rate_limiter
from ..models.content import INTERACTIONS, CommentCreate, ContentType, InteractionKind
from ..services.content import ContentService, get_content_service
from ..services.interactions import InteractionService, get_interaction_service
from ..utils.serialization import to_json

router = APIRouter(tags=["interactions"])
logger = logging.getLogger(__name__)


async def _toggle(
    service: InteractionService,
    limiter: RateLimiter,
    content_type: ContentType,
    kind: InteractionKind,
    raw_id: str,
    user_id: ObjectId,
    feature: str = "interaction",
    limit: int = settings.INTERACTION_LIMIT,
):
    await limiter.enforce(f"{feature}:{user_id}", limit, settings.RATE_LIMIT_WINDOW_MS)
    item_id = parse_object_id(raw_id, f"{content_type.value.replace('_', ' ')} id")
    result = await service.toggle(content_type, item_id, user_id, kind)
    state_key = INTERACTIONS[(content_type, kind)].state_key
    return {state_key: result.active, "count": result.count}


@router.post("/prayers/{prayer_id}/pray")
async def toggle_pray(
    prayer_id: str,
    user_id: ObjectId = Depends(get_current_user_oid),
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: InteractionService = Depends(get_interaction_service)
):
    return await _toggle(service, limiter, ContentType.PRAYER, InteractionKind.PRAY, prayer_id, user_id)


@router.post("/words/{word_id}/like")
async def toggle_word_like(
    word_id: str,
    user_id: ObjectId = Depends(get_current_user_oid),
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: InteractionService = Depends(get_interaction_service)
):
    return await _toggle(service, limiter, ContentType.WORD, InteractionKind.LIKE, word_id, user_id)


@router.post("/words/{word_id}/save")
async def toggle_word_save(
    word_id: str,
    user_id: ObjectId = Depends(get_current_user_oid),
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: InteractionService = Depends(get_interaction_service)
):
    return await _toggle(service, limiter, ContentType.WORD, InteractionKind.SAVE, word_id, user_id)


@router.post("/faith-stories/{story_id}/like")
async def toggle_faith_story_like(
    story_id: str,
    user_id: ObjectId = Depends(get_current_user_oid),
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: InteractionService = Depends(get_interaction_service)
):
    return await _toggle(
        service,
        limiter,
        ContentType.FAITH_STORY,
        InteractionKind.LIKE,
        story_id,
        user_id,
        feature="faith-story-like",
        limit=settings.FAITH_STORY_LIKE_LIMIT,
    )


@router.post("/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    body: CommentCreate,
    user_id: ObjectId = Depends(get_current_user_oid),
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: ContentService = Depends(get_content_service)
):
    await limiter.enforce(f"comment:{user_id}", settings.COMMENT_LIMIT, settings.RATE_LIMIT_WINDOW_MS)
    item_id = parse_object_id(body.item_id, "item id")
    comment = await service.add_comment(user_id, item_id, body)
    logger.info(f"Comment {comment['_id']} on {body.item_type.value} {item_id} by {user_id}")
    return to_json(comment)
