from redis import asyncio as aioredis
from ..core.config import settings


def create_redis_client() -> aioredis.Redis:
    return aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        encoding="utf-8"
    )
