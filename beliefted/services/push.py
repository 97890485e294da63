"""
Push messaging through the FCM HTTP v1 API.

Each registered device token gets its own message. A token FCM reports as
UNREGISTERED is deleted rather than retried; any other failure is logged and
dropped, since push delivery is best-effort.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from bson import ObjectId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..core.config import settings
from ..db.mongodb import FCM_TOKENS

logger = logging.getLogger(__name__)

UNREGISTERED = "UNREGISTERED"


class PushError(Exception):
    pass


class UnregisteredTokenError(PushError):
    pass


class PushClient:
    def __init__(
        self,
        project_id: Optional[str] = None,
        access_token: Optional[str] = None,
        base_url: str = settings.FCM_BASE_URL,
        timeout: float = settings.FCM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.project_id = project_id
        self.access_token = access_token
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.project_id and self.access_token)

    async def start(self) -> None:
        if not self.enabled:
            logger.info("Push messaging not configured, notifications stay in-app only")
            return
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )

    async def stop(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    async def send(self, token: str, title: str, body: str, url: str = "/") -> None:
        """Send one data message to one device token."""
        if self._http is None:
            raise PushError("Push client not started")

        payload = {
            "message": {
                "token": token,
                "data": {"title": title, "body": body, "url": url or "/"},
            }
        }
        try:
            resp = await self._http.post(
                f"/v1/projects/{self.project_id}/messages:send", json=payload
            )
        except httpx.HTTPError as exc:
            raise PushError(f"FCM request failed: {exc}") from exc

        if resp.is_success:
            return
        if _error_code(resp) == UNREGISTERED:
            raise UnregisteredTokenError(token)
        raise PushError(f"FCM returned {resp.status_code}: {resp.text[:200]}")

    async def send_to_user(
        self,
        db: AsyncIOMotorDatabase,
        user_id: ObjectId,
        title: str,
        body: str,
        url: str = "/",
    ) -> int:
        """Send to every device of user_id. Returns the number of messages delivered."""
        if not self.enabled or self._http is None:
            return 0

        tokens = await db[FCM_TOKENS].find({"userId": user_id}).to_list(length=None)
        if not tokens:
            return 0

        results = await asyncio.gather(
            *(self._send_one(db, doc["token"], title, body, url) for doc in tokens)
        )
        return sum(results)

    async def _send_one(self, db, token: str, title: str, body: str, url: str) -> int:
        try:
            await self.send(token, title, body, url)
            return 1
        except UnregisteredTokenError:
            await db[FCM_TOKENS].delete_one({"token": token})
            logger.info("Removed unregistered push token")
        except PushError as e:
            logger.warning(f"Push delivery failed: {str(e)}")
        return 0


def _error_code(resp: httpx.Response) -> Optional[str]:
    try:
        error = resp.json().get("error", {})
    except ValueError:
        return None
    for detail in error.get("details", []) or []:
        code = detail.get("errorCode")
        if code:
            return code
    return None


async def register_token(
    db: AsyncIOMotorDatabase, user_id: ObjectId, token: str, user_agent: Optional[str]
) -> None:
    now = datetime.now(timezone.utc)
    await db[FCM_TOKENS].update_one(
        {"token": token},
        {
            "$set": {"userId": user_id, "token": token, "userAgent": user_agent, "updatedAt": now},
            "$setOnInsert": {"createdAt": now},
        },
        upsert=True,
    )


async def unregister_token(db: AsyncIOMotorDatabase, user_id: ObjectId, token: str) -> None:
    await db[FCM_TOKENS].delete_one({"token": token, "userId": user_id})


def get_push_client(request: Request) -> PushClient:
    return request.app.state.push_client
