"""
MongoDB access

Exposes the shared ``db`` handle (None when the service is not configured
with a database) and the document helpers used by the repository.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.database import Database

from settings import get_settings

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect(database_url: str, database_name: str) -> Database:
    """Create the client lazily; pymongo does not touch the network until first use."""
    global _client, db
    _client = MongoClient(database_url)
    db = _client[database_name]
    logger.info("MongoDB client created for database %s", database_name)
    return db


def close() -> None:
    global _client, db
    if _client is not None:
        _client.close()
    _client = None
    db = None


def _resolve(database: Optional[Database]) -> Database:
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not available. Set DATABASE_URL and DATABASE_NAME.")
    return target


def create_document(collection_name: str, data: Any, database: Optional[Database] = None) -> str:
    """Insert one document and return its id as a string.

    ``created_at`` is kept when the caller supplied one.
    """
    target = _resolve(database)
    if hasattr(data, "model_dump"):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = datetime.now(timezone.utc)
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = target[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    database: Optional[Database] = None,
) -> List[Dict[str, Any]]:
    target = _resolve(database)
    cursor = target[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_str_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


_settings = get_settings()
if _settings.database_configured:
    connect(_settings.database_url, _settings.database_name)
