import logging
import time
import uuid

from fastapi import Request

from ..core.logging import request_id_var

logger = logging.getLogger("api")

REQUEST_ID_HEADER = "X-Request-ID"


async def log_request(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    token = request_id_var.set(request_id)
    started = time.perf_counter()
    logger.info(f"{request.method} {request.url.path}")

    try:
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Status: {response.status_code} in {elapsed_ms:.1f}ms")
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    except Exception as e:
        logger.error(f"Request failed: {str(e)}")
        raise
    finally:
        request_id_var.reset(token)
