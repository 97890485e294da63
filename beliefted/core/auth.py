from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from bson import ObjectId
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import settings
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None, **claims) -> str:
    """Create a session JWT for user_id."""
    to_encode = dict(claims)
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"sub": user_id, "exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str) -> Optional[str]:
    """Return the user id carried by a session token, or None when it is not valid"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode error: {str(e)}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token missing 'sub' claim")
        return None
    return str(user_id)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    """Resolve the session user, raising 401 when there is none"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    user_id = decode_session_token(credentials.credentials)
    if not user_id:
        raise AuthenticationError("Could not validate credentials")
    return user_id


async def get_current_user_oid(user_id: str = Depends(get_current_user_id)) -> ObjectId:
    """The session user as a storage id"""
    if not ObjectId.is_valid(user_id):
        logger.warning("Session subject is not a valid user id")
        raise AuthenticationError("Could not validate credentials")
    return ObjectId(user_id)


async def get_optional_user_oid(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Optional[ObjectId]:
    """The session user when a token is sent, None for anonymous readers"""
    if credentials is None or not credentials.credentials:
        return None
    user_id = await get_current_user_id(credentials)
    return await get_current_user_oid(user_id)
