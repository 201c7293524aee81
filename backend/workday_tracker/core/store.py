# FILE: backend/workday_tracker/core/store.py
# ARCHIVE ENGINE - RECORD STORE ADAPTER
# 1. RecordStore is the only way services reach the document store.
# 2. Filters use the Mongo query subset: equality, $gte/$lte/$gt/$lt, $in, $ne and
#    case-insensitive $regex, on dotted paths.
# 3. update_if is the conditional write used for "at most once" transitions.

import abc
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

Document = Dict[str, Any]
SortSpec = Sequence[Tuple[str, int]]


def new_document_id() -> str:
    return str(ObjectId())


class RecordStore(abc.ABC):
    """Abstract document-collection backend. Returned documents carry their id under "id"."""

    @abc.abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    @abc.abstractmethod
    async def insert(self, collection: str, data: Document, doc_id: Optional[str] = None) -> str:
        """
        Creates a document and returns its id. A fresh id is generated when none is given.
        Raises pymongo DuplicateKeyError when a document with that id already exists.
        """

    @abc.abstractmethod
    async def set(self, collection: str, doc_id: str, data: Document) -> None: ...

    @abc.abstractmethod
    async def update(self, collection: str, doc_id: str, changes: Document) -> bool:
        """Applies a partial update. Returns False when the document does not exist."""

    @abc.abstractmethod
    async def update_if(self, collection: str, doc_id: str, expected: Document, changes: Document) -> bool:
        """Applies `changes` only if every field in `expected` currently matches. Returns whether it did."""

    @abc.abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool: ...

    @abc.abstractmethod
    async def find(
        self,
        collection: str,
        query: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Document]: ...

    @abc.abstractmethod
    async def count(self, collection: str, query: Optional[Document] = None) -> int: ...


class MongoRecordStore(RecordStore):
    """RecordStore over an async motor database."""

    def __init__(self, db: Any):
        self.db: Any = db

    def _id_query(self, doc_id: str) -> Document:
        # Records created by other parts of the app may still use ObjectId keys.
        candidates: List[Any] = [doc_id]
        if ObjectId.is_valid(doc_id):
            candidates.append(ObjectId(doc_id))
        return {"_id": {"$in": candidates}}

    def _out(self, doc: Optional[Document]) -> Optional[Document]:
        if doc is None:
            return None
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def _clean(self, data: Document) -> Document:
        return {k: v for k, v in data.items() if k not in ("_id", "id")}

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = await self.db[collection].find_one(self._id_query(doc_id))
        return self._out(doc)

    async def insert(self, collection: str, data: Document, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or new_document_id()
        await self.db[collection].insert_one({"_id": doc_id, **self._clean(data)})
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        await self.db[collection].replace_one({"_id": doc_id}, self._clean(data), upsert=True)

    async def update(self, collection: str, doc_id: str, changes: Document) -> bool:
        result = await self.db[collection].update_one(self._id_query(doc_id), {"$set": self._clean(changes)})
        return result.matched_count > 0

    async def update_if(self, collection: str, doc_id: str, expected: Document, changes: Document) -> bool:
        query = {**self._id_query(doc_id), **expected}
        updated = await self.db[collection].find_one_and_update(
            query,
            {"$set": self._clean(changes)},
            return_document=ReturnDocument.AFTER,
        )
        return updated is not None

    async def delete(self, collection: str, doc_id: str) -> bool:
        result = await self.db[collection].delete_one(self._id_query(doc_id))
        return result.deleted_count > 0

    async def find(
        self,
        collection: str,
        query: Optional[Document] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Document]:
        cursor = self.db[collection].find(query or {})
        if sort:
            cursor = cursor.sort([(field, DESCENDING if direction < 0 else ASCENDING) for field, direction in sort])
        if offset:
            cursor = cursor.skip(offset)
        if limit:
            cursor = cursor.limit(limit)
        return [self._out(doc) async for doc in cursor]

    async def count(self, collection: str, query: Optional[Document] = None) -> int:
        return await self.db[collection].count_documents(query or {})
