from typing import Optional
import logging

import pymongo
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ..core.config import settings

logger = logging.getLogger(__name__)

# Collection names
PRAYERS = "prayers"
WORDS = "words"
FAITH_STORIES = "faith_stories"
COMMENTS = "comments"
WORD_COMMENTS = "word_comments"
FAITH_STORY_COMMENTS = "faith_story_comments"
NOTIFICATIONS = "notifications"
USERS = "users"
FCM_TOKENS = "fcm_tokens"


class MongoDB:
    client: Optional[AsyncIOMotorClient] = None

    def __init__(self):
        self.client = None
        self.db = None

    async def connect(self):
        try:
            self.client = AsyncIOMotorClient(
                settings.MONGODB_URI,
                connectTimeoutMS=settings.MONGODB_CONNECT_TIMEOUT_MS,
                socketTimeoutMS=settings.MONGODB_SOCKET_TIMEOUT_MS,
                retryWrites=True,
                appname="beliefted-api",
            )
            self.db = self.client[settings.MONGODB_DB_NAME]
            await self.db.command("ping")
            logger.info(f"Connected to MongoDB database: {settings.MONGODB_DB_NAME}")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed.")

    def get_db(self) -> AsyncIOMotorDatabase:
        if self.db is None:
            raise RuntimeError("Database not initialized")
        return self.db


mongodb = MongoDB()


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the API relies on (idempotent)."""
    await db[USERS].create_index("username", unique=True, sparse=True)
    await db[NOTIFICATIONS].create_index([("userId", pymongo.ASCENDING), ("createdAt", pymongo.DESCENDING)])
    await db[FCM_TOKENS].create_index("token", unique=True)
    await db[FCM_TOKENS].create_index([("userId", pymongo.ASCENDING), ("createdAt", pymongo.DESCENDING)])
    for collection in (PRAYERS, WORDS, FAITH_STORIES):
        await db[collection].create_index([("createdAt", pymongo.DESCENDING)])
        await db[collection].create_index([("userId", pymongo.ASCENDING), ("createdAt", pymongo.DESCENDING)])
    await db[COMMENTS].create_index("prayerId")
    await db[WORD_COMMENTS].create_index("wordId")
    await db[FAITH_STORY_COMMENTS].create_index("storyId")
    logger.info("MongoDB indexes ensured")


def get_db(request: Request) -> AsyncIOMotorDatabase:
    """FastAPI dependency returning the database opened at startup"""
    return request.app.state.db
