# hyperlocal/database.py
from typing import Any, Optional

import certifi
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from hyperlocal.core.config import Settings


def get_client(config: Settings) -> AsyncIOMotorClient:
    kwargs = {}
    # Atlas clusters need a CA bundle on hosts without a system store
    if config.MONGO_URL.startswith("mongodb+srv://") or "tls=true" in config.MONGO_URL:
        kwargs["tlsCAFile"] = certifi.where()
    return AsyncIOMotorClient(config.MONGO_URL, **kwargs)


def get_database(client: AsyncIOMotorClient, config: Settings) -> AsyncIOMotorDatabase:
    return client[config.MONGO_DB_NAME]


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def as_ref(value: Any) -> Any:
    """Store references as ObjectId when they parse, else keep them as given."""
    oid = to_object_id(value)
    return oid if oid is not None else value


def serialize_document(doc: Optional[dict]) -> Optional[dict]:
    """Convert a Mongo document into a plain dict with string ids."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, list):
            out[key] = [
                serialize_document(item) if isinstance(item, dict)
                else str(item) if isinstance(item, ObjectId)
                else item
                for item in value
            ]
        elif isinstance(value, dict):
            out[key] = serialize_document(value)
        else:
            out[key] = value
    return out
