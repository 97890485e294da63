import os
import secrets
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project Info
    PROJECT_NAME: str = "Beliefted"
    API_PREFIX: str = "/api"
    FRONTEND_URL: str = Field(
        "http://localhost:3000",
        env="FRONTEND_URL",
        description="Frontend application URL"
    )

    # MongoDB Configuration
    MONGODB_URI: str = Field(
        "mongodb://localhost:27017",
        env="MONGODB_URI",
        description="MongoDB connection string"
    )
    MONGODB_DB_NAME: str = Field(
        "beliefted",
        env="MONGODB_DB_NAME",
        description="MongoDB database name"
    )
    MONGODB_CONNECT_TIMEOUT_MS: int = Field(5000, env="MONGODB_CONNECT_TIMEOUT_MS")
    MONGODB_SOCKET_TIMEOUT_MS: int = Field(10000, env="MONGODB_SOCKET_TIMEOUT_MS")

    @validator("MONGODB_URI")
    def validate_mongodb_uri(cls, v):
        if not v.startswith("mongodb://") and not v.startswith("mongodb+srv://"):
            raise ValueError("MongoDB URI must start with mongodb:// or mongodb+srv://")
        return v

    # Redis Configuration
    REDIS_URL: str = Field(
        "redis://localhost:6379/0",
        env="REDIS_URL",
        description="Full Redis connection URL including credentials"
    )

    # Rate limiting
    RATE_LIMIT_BACKEND: str = Field(
        "memory",
        env="RATE_LIMIT_BACKEND",
        description="Where rate limit windows are kept: memory or redis"
    )
    RATE_LIMIT_WINDOW_MS: int = Field(60_000, env="RATE_LIMIT_WINDOW_MS")
    RATE_LIMIT_SWEEP_EVERY: int = Field(
        500,
        env="RATE_LIMIT_SWEEP_EVERY",
        description="Number of checks between purges of expired windows"
    )
    PRAYER_POST_LIMIT: int = 5
    FAITH_STORY_POST_LIMIT: int = 5
    COMMENT_LIMIT: int = 10
    FAITH_STORY_LIKE_LIMIT: int = 20
    INTERACTION_LIMIT: int = 30
    SEARCH_LIMIT: int = 30

    @validator("RATE_LIMIT_BACKEND")
    def validate_rate_limit_backend(cls, v):
        if v not in ("memory", "redis"):
            raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'")
        return v

    # Sessions are JWTs signed by the identity provider
    SECRET_KEY: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        min_length=32,
        env="SECRET_KEY"
    )
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30

    # Notifications
    DISABLE_NOTIFICATIONS_COUNT: bool = Field(False, env="DISABLE_NOTIFICATIONS_COUNT")
    NOTIFICATION_QUEUE_SIZE: int = Field(1000, env="NOTIFICATION_QUEUE_SIZE")
    NOTIFICATION_FAILURE_HISTORY: int = 100

    # Push messaging (FCM HTTP v1)
    FCM_PROJECT_ID: Optional[str] = Field(None, env="FCM_PROJECT_ID")
    FCM_ACCESS_TOKEN: Optional[str] = Field(None, env="FCM_ACCESS_TOKEN")
    FCM_BASE_URL: str = "https://fcm.googleapis.com"
    FCM_TIMEOUT: float = Field(5.0, env="FCM_TIMEOUT")

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = Field(False, env="LOG_JSON")

    class Config:
        env_file = ".env" if os.path.isfile(".env") else None
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
