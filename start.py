import os
import sys
import logging
import asyncio

import uvicorn

from beliefted.core.config import settings
from beliefted.core.logging import setup_logging
from beliefted.db.mongodb import mongodb

logger = logging.getLogger(__name__)


async def check_database_connection():
    """Check if database connection is working"""
    try:
        await mongodb.connect()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")
        return False
    finally:
        await mongodb.close()


def check_environment():
    """Warn about settings that should not keep their development defaults"""
    if "SECRET_KEY" not in os.environ:
        logger.warning("SECRET_KEY not set, sessions will not survive a restart")
    if settings.RATE_LIMIT_BACKEND == "memory" and int(os.getenv("WEB_CONCURRENCY", 1)) > 1:
        logger.warning("In-memory rate limits are per worker, use RATE_LIMIT_BACKEND=redis to share them")


if __name__ == "__main__":
    setup_logging()

    logger.info("Starting application initialization...")
    check_environment()
    if not asyncio.run(check_database_connection()):
        logger.error("Startup checks failed, exiting...")
        sys.exit(1)

    port = int(os.getenv("PORT", 8080))
    uvicorn.run(
        "beliefted.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENVIRONMENT") == "development",
        workers=int(os.getenv("WEB_CONCURRENCY", 1)),
        log_level=settings.LOG_LEVEL.lower()
    )
