"""
Keyset pagination over (createdAt, _id), newest first.

A cursor is base64 of ``<createdAt ISO>|<_id hex>`` taken from the last item
of a page. Datetimes are compared as naive UTC, which is how MongoDB hands
them back.
"""
import base64
import binascii
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId

DEFAULT_PAGE_SIZE = 6
MAX_PAGE_SIZE = 50

NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return min(max(limit, 1), MAX_PAGE_SIZE)


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def encode_cursor(document: Dict[str, Any]) -> str:
    raw = f"{_naive_utc(document['createdAt']).isoformat()}|{document['_id']}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: Optional[str]) -> Optional[Tuple[datetime, Optional[ObjectId]]]:
    """Return (createdAt, _id) for a cursor, or None when it cannot be read"""
    if not cursor:
        return None
    try:
        decoded = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        created_raw, _, id_raw = decoded.partition("|")
        created_at = _naive_utc(datetime.fromisoformat(created_raw))
    except (ValueError, binascii.Error):
        return None
    return created_at, ObjectId(id_raw) if ObjectId.is_valid(id_raw) else None


def cursor_filter(cursor: Optional[str]) -> Dict[str, Any]:
    """Mongo filter selecting everything strictly after the cursor position"""
    position = decode_cursor(cursor)
    if position is None:
        return {}
    created_at, item_id = position
    branches = [{"createdAt": {"$lt": created_at}}]
    if item_id is not None:
        branches.append({"createdAt": created_at, "_id": {"$lt": item_id}})
    return {"$or": branches}


def sort_key(document: Dict[str, Any]) -> Tuple[datetime, str]:
    return _naive_utc(document["createdAt"]), str(document["_id"])
