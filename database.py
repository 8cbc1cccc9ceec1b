"""
MongoDB access for the Nawartu API.

The client is built once from settings. Route handlers receive the
database through the ``get_db`` dependency so tests can swap it out.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()
_client: Optional[MongoClient] = None
db: Optional[Database] = None

if _settings.database_url and _settings.database_name:
    _client = MongoClient(_settings.database_url)
    db = _client[_settings.database_name]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form MongoDB hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_object_id(value: str, label: str = "ID") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # ObjectId isn't JSON serializable
    if doc is None:
        return None
    doc["_id"] = str(doc.get("_id"))
    return doc


def create_document(
    collection_name: str,
    data: Union[BaseModel, Dict[str, Any]],
    database: Optional[Database] = None,
) -> str:
    database = database if database is not None else get_db()
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(exclude_none=False)
    else:
        data_dict = dict(data)
    data_dict.pop("id", None)
    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
    database: Optional[Database] = None,
) -> List[Dict[str, Any]]:
    database = database if database is not None else get_db()
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in cursor]


def update_document(
    collection_name: str,
    object_id: ObjectId,
    changes: Dict[str, Any],
    database: Optional[Database] = None,
) -> Optional[Dict[str, Any]]:
    """Apply ``$set`` changes and return the updated document, or None."""
    database = database if database is not None else get_db()
    changes = dict(changes)
    changes["updated_at"] = utcnow()
    result = database[collection_name].update_one({"_id": object_id}, {"$set": changes})
    if result.matched_count == 0:
        return None
    return database[collection_name].find_one({"_id": object_id})


def ensure_indexes(database: Optional[Database] = None) -> None:
    database = database if database is not None else db
    if database is None:
        return
    database["banner"].create_index([("is_active", ASCENDING), ("created_at", DESCENDING)])
    database["user"].create_index("email", unique=True)
    database["booking"].create_index([("property_id", ASCENDING), ("check_in", ASCENDING)])
    database["special_offer"].create_index([("is_active", ASCENDING), ("priority", DESCENDING)])
    logger.info("MongoDB indexes ensured on %s", database.name)
