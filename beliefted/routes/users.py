from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, Request

from ..core.auth import get_current_user_oid
from ..core.config import settings
from ..core.identifiers import parse_object_id
from ..middleware.rate_limit import RateLimiter, get_client_ip, get_rate_limiter
from ..models.user import FollowRequest, FollowResult, UserSearchResult
from ..services.users import MIN_QUERY_LENGTH, UserService, clean_search_query, get_user_service

router = APIRouter(tags=["users"])


@router.post("/user/follow", response_model=FollowResult, response_model_by_alias=True)
async def toggle_follow(
    body: FollowRequest,
    user_id: ObjectId = Depends(get_current_user_oid),
    service: UserService = Depends(get_user_service)
):
    """Follow the given user, or unfollow when already following"""
    target_id = parse_object_id(body.user_id, "user")
    return await service.toggle_follow(user_id, target_id)


@router.get("/users/search", response_model=List[UserSearchResult])
async def search_users(
    request: Request,
    q: str = "",
    limiter: RateLimiter = Depends(get_rate_limiter),
    service: UserService = Depends(get_user_service)
):
    if len(clean_search_query(q)) < MIN_QUERY_LENGTH:
        return []
    ip = get_client_ip(request)
    await limiter.enforce(f"search:{ip}", settings.SEARCH_LIMIT, settings.RATE_LIMIT_WINDOW_MS)
    return await service.search(q)
