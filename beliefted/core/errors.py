from fastapi import HTTPException, status
from typing import Dict, Any, Optional


class APIError(HTTPException):
    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str = None,
        metadata: Dict[str, Any] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(
            status_code=status_code,
            detail={
                "message": detail,
                "error_code": error_code or "UNKNOWN_ERROR",
                "metadata": metadata or {}
            },
            headers=headers
        )


class AuthenticationError(APIError):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class InvalidInputError(APIError):
    def __init__(self, detail: str = "Invalid input", metadata: Dict[str, Any] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="INVALID_INPUT",
            metadata=metadata
        )


class NotFoundError(APIError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
            error_code="RESOURCE_NOT_FOUND",
            metadata={"resource": resource, "id": resource_id}
        )


class RateLimitError(APIError):
    def __init__(self, key: str, retry_after_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            error_code="RATE_LIMITED",
            metadata={"key": key},
            headers={"Retry-After": str(max(retry_after_seconds, 1))}
        )
