import copy
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from pymongo.errors import DuplicateKeyError

from workday_tracker.core.store import RecordStore, new_document_id
from workday_tracker.models.archive import ARCHIVE_INDEX_COLLECTION
from workday_tracker.models.ticket import TICKETS_COLLECTION
from workday_tracker.services.archive_engine import ArchiveEngine

_MISSING = object()


def _get_path(doc: Dict[str, Any], path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for field, cond in query.items():
        value = doc.get("id", _MISSING) if field == "_id" else _get_path(doc, field)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$options":
                    continue
                if op == "$regex":
                    flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                    if not isinstance(value, str) or not re.search(arg, value, flags):
                        return False
                elif op == "$in":
                    if value is _MISSING or value not in arg:
                        return False
                elif op == "$ne":
                    if value is not _MISSING and value == arg:
                        return False
                elif value is _MISSING:
                    return False
                elif op == "$gte" and not value >= arg:
                    return False
                elif op == "$gt" and not value > arg:
                    return False
                elif op == "$lte" and not value <= arg:
                    return False
                elif op == "$lt" and not value < arg:
                    return False
        elif cond is None:
            if value is not _MISSING and value is not None:
                return False
        elif value is _MISSING or value != cond:
            return False
    return True


class InMemoryRecordStore(RecordStore):
    """RecordStore fake with the same filter subset as MongoRecordStore, plus fault injection."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._faults: List[Tuple[str, str, Callable[[Dict[str, Any]], bool], Exception]] = []

    # --- test helpers ---
    def seed(self, collection: str, doc: Dict[str, Any]) -> str:
        doc = copy.deepcopy(doc)
        doc_id = doc.pop("id", None) or new_document_id()
        self.collections.setdefault(collection, {})[doc_id] = doc
        return doc_id

    def raw(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self.collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def all(self, collection: str) -> List[Dict[str, Any]]:
        return [{**copy.deepcopy(d), "id": i} for i, d in self.collections.get(collection, {}).items()]

    def fail_when(
        self,
        op: str,
        collection: str,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
        exc: Optional[Exception] = None,
    ) -> None:
        self._faults.append((op, collection, predicate or (lambda _: True), exc or RuntimeError("simulated store fault")))

    def clear_faults(self) -> None:
        self._faults.clear()

    def _check(self, op: str, collection: str, payload: Dict[str, Any]) -> None:
        for f_op, f_collection, predicate, exc in self._faults:
            if f_op == op and f_collection == collection and predicate(payload):
                raise exc

    def _clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return copy.deepcopy({k: v for k, v in data.items() if k not in ("id", "_id")})

    # --- RecordStore ---
    async def get(self, collection, doc_id):
        self._check("get", collection, {"id": doc_id})
        doc = self.collections.get(collection, {}).get(doc_id)
        return {**copy.deepcopy(doc), "id": doc_id} if doc is not None else None

    async def insert(self, collection, data, doc_id=None):
        self._check("insert", collection, data)
        doc_id = doc_id or new_document_id()
        if doc_id in self.collections.get(collection, {}):
            raise DuplicateKeyError(f"E11000 duplicate key error collection: {collection} dup key: {doc_id}")
        self.collections.setdefault(collection, {})[doc_id] = self._clean(data)
        return doc_id

    async def set(self, collection, doc_id, data):
        self._check("set", collection, data)
        self.collections.setdefault(collection, {})[doc_id] = self._clean(data)

    async def update(self, collection, doc_id, changes):
        self._check("update", collection, {"id": doc_id, **changes})
        doc = self.collections.get(collection, {}).get(doc_id)
        if doc is None:
            return False
        doc.update(self._clean(changes))
        return True

    async def update_if(self, collection, doc_id, expected, changes):
        self._check("update_if", collection, {"id": doc_id, **changes})
        doc = self.collections.get(collection, {}).get(doc_id)
        if doc is None or not _matches(doc, expected):
            return False
        doc.update(self._clean(changes))
        return True

    async def delete(self, collection, doc_id):
        return self.collections.get(collection, {}).pop(doc_id, None) is not None

    async def find(self, collection, query=None, sort=None, limit=None, offset=0):
        self._check("find", collection, query or {})
        docs = [d for d in self.all(collection) if _matches(d, query or {})]
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=lambda d: _get_path(d, field), reverse=direction < 0)
        docs = docs[offset:]
        return docs[:limit] if limit else docs

    async def count(self, collection, query=None):
        self._check("count", collection, query or {})
        return len([d for d in self.all(collection) if _matches(d, query or {})])


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def engine(store):
    return ArchiveEngine(store)


@pytest.fixture
def make_ticket(store):
    def _make(ticket_id: str = "ticket-1", image_ids=("a", "b"), **fields) -> str:
        doc = {
            "id": ticket_id,
            "userId": "johndoe",
            "date": "2024-12-15",
            "jobsite": "site-1",
            "jobsiteName": "Downtown HQ",
            "truckNumber": "Truck-1",
            "hangers": 12,
            "images": [
                {
                    "id": image_id,
                    "filename": f"{image_id}.jpg",
                    "url": f"gs://workday-tracker/tickets/{ticket_id}/{image_id}.jpg",
                    "size": 1024,
                    "contentType": "image/png",
                }
                for image_id in image_ids
            ],
            "archiveStatus": "active",
        }
        doc.update(fields)
        return store.seed(TICKETS_COLLECTION, doc)
    return _make


@pytest.fixture
def make_entry(store):
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _make(type_: str = "ticket", n: int = 0, **fields) -> str:
        doc = {
            "type": type_,
            "originalId": f"{type_}-{n}",
            "title": f"Archived {type_} {n}",
            "date": (datetime(2024, 12, 1) + timedelta(days=n % 28)).date().isoformat(),
            "archivedAt": base + timedelta(hours=n),
            "status": "archived",
            "metadata": {"jobsite": "site-1", "truck": {"number": "Truck-1"}},
        }
        doc.update(fields)
        return store.seed(ARCHIVE_INDEX_COLLECTION, doc)
    return _make
