from typing import Any

from bson import ObjectId
from fastapi.encoders import jsonable_encoder


def to_json(document: Any) -> Any:
    """Make a MongoDB document (or list of them) JSON serialisable"""
    return jsonable_encoder(document, custom_encoder={ObjectId: str})
