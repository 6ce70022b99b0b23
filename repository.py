"""
Record Repository

Create, delete and observe documents in the ``products``, ``heroes`` and
``orders`` collections. Observers receive the full ordered snapshot of a
collection on subscribe and again after every write made through the
repository; ``refresh()`` re-publishes after writes made elsewhere.
Timestamps are normalized here so callers only ever see ``datetime`` values.
"""
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database
from pymongo.errors import PyMongoError

import database
from errors import DeletionFailed, PersistenceFailed, ReadFailed
from schemas import normalize_timestamp

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
SnapshotCallback = Callable[[List[Record]], None]

TIMESTAMP_FIELDS = ("created_at", "updated_at", "timestamp")
ASCENDING = "asc"
DESCENDING = "desc"


def normalize_record(doc: Record) -> Record:
    d = database.to_str_id(doc)
    for key in TIMESTAMP_FIELDS:
        if key in d:
            try:
                d[key] = normalize_timestamp(d[key])
            except (TypeError, ValueError, OverflowError, OSError):
                logger.warning("Record %s has an unreadable %s: %r", d.get("id"), key, d[key])
                d[key] = None
    return d


def sort_records(records: List[Record], order_key: str, direction: str) -> List[Record]:
    """Order by ``order_key``; records missing the key sort last when descending."""
    def key(record: Record):
        value = record.get(order_key)
        return (value is not None, value if value is not None else 0)

    return sorted(records, key=key, reverse=direction == DESCENDING)


class Subscription:
    """Handle for one live snapshot feed. Call ``unsubscribe()`` once on teardown."""

    def __init__(
        self,
        repository: "Repository",
        collection: str,
        callback: SnapshotCallback,
        order_key: str,
        direction: str,
    ) -> None:
        self.repository = repository
        self.collection = collection
        self.callback = callback
        self.order_key = order_key
        self.direction = direction
        self.active = True

    def push(self) -> None:
        self.callback(self.repository.list(self.collection, self.order_key, self.direction))

    def unsubscribe(self) -> None:
        if not self.active:
            logger.warning("Subscription to %s was already closed", self.collection)
            return
        self.active = False
        self.repository._detach(self)
        logger.debug("Unsubscribed from %s", self.collection)


class Repository(ABC):
    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[Subscription]] = {}

    # -- storage primitives --

    @abstractmethod
    def _insert(self, collection: str, record: Record) -> str:
        ...

    @abstractmethod
    def _delete_one(self, collection: str, record_id: str) -> bool:
        ...

    @abstractmethod
    def _delete_many(self, collection: str, ids: List[str]) -> int:
        ...

    @abstractmethod
    def _fetch(self, collection: str) -> List[Record]:
        ...

    # -- public interface --

    def create(self, collection: str, record: Any) -> str:
        record_id = self._insert(collection, record)
        logger.info("Created %s/%s", collection, record_id)
        self.refresh(collection)
        return record_id

    def delete(self, collection: str, record_id: str) -> None:
        if not self._delete_one(collection, record_id):
            logger.warning("Delete of %s/%s matched no record", collection, record_id)
        else:
            logger.info("Deleted %s/%s", collection, record_id)
        self.refresh(collection)

    def delete_batch(self, collection: str, ids: Iterable[str]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        deleted = self._delete_many(collection, ids)
        logger.info("Deleted %d of %d records from %s", deleted, len(ids), collection)
        self.refresh(collection)
        return deleted

    def list(self, collection: str, order_key: str = "created_at", direction: str = DESCENDING) -> List[Record]:
        records = [normalize_record(d) for d in self._fetch(collection)]
        return sort_records(records, order_key, direction)

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        order_key: str = "created_at",
        direction: str = DESCENDING,
    ) -> Subscription:
        subscription = Subscription(self, collection, on_snapshot, order_key, direction)
        self._subscriptions.setdefault(collection, []).append(subscription)
        logger.debug("Subscribed to %s ordered by %s %s", collection, order_key, direction)
        try:
            subscription.push()
        except ReadFailed as e:
            # Stays subscribed; the next write or refresh delivers a snapshot
            logger.error("Initial snapshot of %s failed: %s", collection, e)
        return subscription

    def refresh(self, collection: str) -> None:
        for subscription in list(self._subscriptions.get(collection, [])):
            try:
                subscription.push()
            except Exception:
                logger.exception("Snapshot listener for %s failed", collection)

    def _detach(self, subscription: Subscription) -> None:
        listeners = self._subscriptions.get(subscription.collection, [])
        if subscription in listeners:
            listeners.remove(subscription)


class MongoRepository(Repository):
    def __init__(self, db: Database) -> None:
        super().__init__()
        self.db = db

    def _insert(self, collection: str, record: Any) -> str:
        try:
            return database.create_document(collection, record, self.db)
        except PyMongoError as e:
            raise PersistenceFailed(f"Could not save to {collection}: {e}") from e

    def _delete_one(self, collection: str, record_id: str) -> bool:
        try:
            oid = ObjectId(record_id)
        except (InvalidId, TypeError):
            return False
        try:
            return self.db[collection].delete_one({"_id": oid}).deleted_count > 0
        except PyMongoError as e:
            raise DeletionFailed(f"Could not delete {collection}/{record_id}: {e}") from e

    def _delete_many(self, collection: str, ids: List[str]) -> int:
        oids = []
        for record_id in ids:
            try:
                oids.append(ObjectId(record_id))
            except (InvalidId, TypeError):
                logger.warning("Skipping malformed id %r in batch delete", record_id)
        if not oids:
            return 0
        try:
            return self.db[collection].delete_many({"_id": {"$in": oids}}).deleted_count
        except PyMongoError as e:
            raise DeletionFailed(f"Could not delete from {collection}: {e}") from e

    def _fetch(self, collection: str) -> List[Record]:
        try:
            return database.get_documents(collection, {}, None, self.db)
        except PyMongoError as e:
            raise ReadFailed(f"Could not read {collection}: {e}") from e


class InMemoryRepository(Repository):
    """Process-local store used when no database is configured, and in tests."""

    def __init__(self) -> None:
        super().__init__()
        self._collections: Dict[str, "OrderedDict[str, Record]"] = {}

    def _insert(self, collection: str, record: Any) -> str:
        data = record.model_dump() if hasattr(record, "model_dump") else dict(record)
        now = datetime.now(timezone.utc)
        data.setdefault("created_at", now)
        data["updated_at"] = now
        record_id = uuid4().hex
        data["_id"] = record_id
        self._collections.setdefault(collection, OrderedDict())[record_id] = data
        return record_id

    def _delete_one(self, collection: str, record_id: str) -> bool:
        return self._collections.get(collection, OrderedDict()).pop(record_id, None) is not None

    def _delete_many(self, collection: str, ids: List[str]) -> int:
        docs = self._collections.get(collection, OrderedDict())
        return sum(1 for record_id in ids if docs.pop(record_id, None) is not None)

    def _fetch(self, collection: str) -> List[Record]:
        return [dict(d) for d in self._collections.get(collection, OrderedDict()).values()]

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))


def build_repository(db: Optional[Database]) -> Repository:
    if db is None:
        logger.warning("Database not configured; records are kept in memory only")
        return InMemoryRepository()
    return MongoRepository(db)
