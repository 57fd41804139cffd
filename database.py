"""
MongoDB connection and generic document helpers.

The connection is configured from DATABASE_URL and DATABASE_NAME. When either
is missing `db` stays None and callers are expected to report the database as
not configured.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")


def connect(url: Optional[str], name: Optional[str]) -> Optional[Database]:
    if not url or not name:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
        return None
    # MongoClient connects lazily, so this does not block on an unreachable server.
    client = MongoClient(url, tz_aware=True)
    return client[name]


db = connect(DATABASE_URL, DATABASE_NAME)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict], database: Optional[Database] = None) -> str:
    """Insert a document stamped with created_at/updated_at and return its id as a string."""
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not configured")

    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    doc.setdefault("created_at", _now())
    doc["updated_at"] = _now()
    result = target[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  database: Optional[Database] = None) -> list:
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not configured")

    cursor = target[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
