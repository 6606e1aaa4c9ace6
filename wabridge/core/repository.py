# wabridge/core/repository.py

from typing import TypeVar, Type, Optional, List, Any, Dict, Tuple, Generic, NoReturn
from abc import ABC
from datetime import datetime, timezone

from pydantic import BaseModel, ValidationError as PydanticValidationError
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection
from bson import ObjectId
from pymongo.results import UpdateResult
from loguru import logger

from wabridge.core.errors import UpstreamError

ModelType = TypeVar("ModelType", bound=BaseModel)

SortSpec = List[Tuple[str, int]]

def to_mongo_datetime(value: datetime) -> datetime:
    """Aware datetimes are stored as naive UTC (what pymongo hands back)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

def id_filter(doc_id: Any) -> Dict[str, Any]:
    """Matches an ObjectId when `doc_id` looks like one, else the raw value (externally created docs)."""
    if isinstance(doc_id, str) and ObjectId.is_valid(doc_id):
        return {"_id": ObjectId(doc_id)}
    return {"_id": doc_id}

class BaseRepository(ABC, Generic[ModelType]):
    """Motor collection access that hands back validated Pydantic models."""

    model: Type[ModelType]
    collection_name: str

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str | None = None):
        self.collection_name = collection_name or getattr(self, "collection_name", None)
        if not self.collection_name:
            raise AttributeError(f"{type(self).__name__} needs a collection name")
        if not issubclass(getattr(self, "model", object), BaseModel):
            raise AttributeError(f"{type(self).__name__} needs a Pydantic 'model'")

        self.collection: AsyncIOMotorCollection = db[self.collection_name]

    def _handle_db_exception(self, e: Exception, operation: str, **context: Any) -> NoReturn:
        details = " ".join(f"{k}={str(v)[:100]!r}" for k, v in context.items() if v is not None)
        logger.exception(f"Mongo {operation} failed on '{self.collection_name}' {details}: {e}")
        raise UpstreamError(f"Database error during operation: {operation}") from e

    def _parse(self, document: Dict[str, Any]) -> Optional[ModelType]:
        try:
            return self.model.model_validate(document)
        except PydanticValidationError as e:
            logger.warning(
                f"Ignoring malformed document {document.get('_id')} in '{self.collection_name}' "
                f"({e.error_count()} validation error(s))"
            )
            return None

    async def list_by(
        self,
        query: Dict[str, Any],
        limit: int = 100,
        sort: Optional[SortSpec] = None,
    ) -> List[ModelType]:
        """Documents matching `query`, optionally sorted. limit=0 means unbounded."""
        try:
            cursor = self.collection.find(query, sort=sort or None, limit=max(0, limit))
            documents = await cursor.to_list(length=limit or None)
        except Exception as e:
            self._handle_db_exception(e, "find", query=query)
        parsed = (self._parse(doc) for doc in documents)
        return [doc for doc in parsed if doc is not None]

    async def update_fields(self, doc_id: str | ObjectId, fields: Dict[str, Any]) -> bool:
        """`$set` of `fields` plus `updated_at`. False when nothing matched."""
        changes = {k: v for k, v in fields.items() if k not in ("_id", "id")}
        if not changes:
            return False
        changes["updated_at"] = to_mongo_datetime(datetime.now(timezone.utc))

        try:
            result: UpdateResult = await self.collection.update_one(id_filter(doc_id), {"$set": changes})
        except Exception as e:
            self._handle_db_exception(e, "update_one", id=doc_id)
        if not result.matched_count:
            logger.warning(f"No document {doc_id} in '{self.collection_name}' to update")
            return False
        return True
