from pydantic import BaseModel, Field
from typing import Optional


class FollowRequest(BaseModel):
    user_id: str = Field("", alias="userId")

    class Config:
        populate_by_name = True


class FollowResult(BaseModel):
    following: bool
    followers_count: int = Field(..., alias="followersCount")

    class Config:
        populate_by_name = True


class UserSearchResult(BaseModel):
    id: str
    username: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None


class FcmTokenRequest(BaseModel):
    token: Optional[str] = None
