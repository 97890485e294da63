"""
Beliefted API entry point.

Startup sequence:
  1. Configure logging
  2. Connect to MongoDB and ensure indexes
  3. Build the rate limiter (in-memory, or Redis when RATE_LIMIT_BACKEND=redis)
  4. Start the push client
  5. Start the notification dispatcher
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .core.config import settings
from .core.logging import setup_logging
from .core.mentions import MentionBoundary
from .db.mongodb import ensure_indexes, mongodb
from .db.redis import create_redis_client
from .middleware.logging import log_request
from .middleware.rate_limit import MemoryRateLimitStore, RateLimiter, RedisRateLimitStore
from .routes import content, fcm, health, interactions, notifications, users, verses
from .services.notifications import NotificationDispatcher, NotificationFanout
from .services.push import PushClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open every external connection on startup and close them on shutdown."""
    setup_logging()
    logger.info(f"Starting {settings.PROJECT_NAME} API {__version__}")

    await mongodb.connect()
    db = mongodb.get_db()
    await ensure_indexes(db)
    app.state.db = db

    redis = None
    if settings.RATE_LIMIT_BACKEND == "redis":
        redis = create_redis_client()
        await redis.ping()
        logger.info("Connected to Redis, rate limits are shared across instances")
        store = RedisRateLimitStore(redis)
    else:
        store = MemoryRateLimitStore()
    app.state.rate_limiter = RateLimiter(store=store, sweep_every=settings.RATE_LIMIT_SWEEP_EVERY)

    push = PushClient(project_id=settings.FCM_PROJECT_ID, access_token=settings.FCM_ACCESS_TOKEN)
    await push.start()
    app.state.push_client = push

    dispatcher = NotificationDispatcher(NotificationFanout(db, push, MentionBoundary.WORD_CHAR))
    dispatcher.start()
    app.state.dispatcher = dispatcher

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await dispatcher.stop()
    await push.stop()
    if redis is not None:
        await redis.aclose()
    await mongodb.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=__version__,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)

app.middleware("http")(log_request)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "message": "Invalid input",
                "error_code": "INVALID_INPUT",
                "metadata": {"errors": jsonable_encoder(exc.errors())},
            }
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": {
                "message": "Internal server error",
                "error_code": "INTERNAL_ERROR",
                "metadata": {},
            }
        },
    )


for module in (content, interactions, notifications, users, fcm, verses, health):
    app.include_router(module.router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {"message": f"Welcome to the {settings.PROJECT_NAME} API", "version": __version__}
