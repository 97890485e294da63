"""
Identifier normalization for ids that arrive in paths and request bodies.

Some clients echo ids back in their shell representation, e.g.
``ObjectId("507f1f77bcf86cd799439011")``. Those are unwrapped before the id
is validated as a storage identifier.
"""

import re
from typing import Optional

from bson import ObjectId

from .errors import InvalidInputError

OBJECT_ID_WRAPPER = re.compile(r'^ObjectId\("(.+)"\)$')


def normalize_id(raw_id: Optional[str]) -> str:
    """Strip an ObjectId("...") wrapper, otherwise return the input unchanged"""
    if raw_id is None:
        return ""
    match = OBJECT_ID_WRAPPER.match(raw_id)
    return match.group(1) if match else raw_id


def is_valid_id(raw_id: Optional[str]) -> bool:
    return ObjectId.is_valid(normalize_id(raw_id))


def parse_object_id(raw_id: Optional[str], label: str = "id") -> ObjectId:
    """Normalize and validate an id, raising InvalidInputError when malformed"""
    if not is_valid_id(raw_id):
        raise InvalidInputError(f"Invalid {label}", metadata={"value": raw_id})
    return ObjectId(normalize_id(raw_id))
