"""
Class repository: durable storage of classes keyed by integer id.

The service layer only relies on IClassRepository; MongoClassRepository is
the production implementation on motor. Integer ids are allocated from a
counters collection so they stay compatible with the event wire format.
"""

from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from class_service.core.errors import ClassNotFoundError, PersistenceError
from class_service.core.logger import logger
from class_service.models.school_class import ClassDB


class IClassRepository(ABC):
    """Persistence port for classes"""

    @abstractmethod
    async def save(self, entity: ClassDB) -> ClassDB:
        """
        Insert (id is None) or replace a class; returns the stored entity with its id

        Raises:
            ClassNotFoundError: replacing a class that no longer exists
        """

    @abstractmethod
    async def find_by_id(self, class_id: int) -> Optional[ClassDB]:
        pass

    @abstractmethod
    async def delete_by_id(self, class_id: int) -> bool:
        """Delete a class; True if a document was removed"""

    @abstractmethod
    async def find_all(self) -> List[ClassDB]:
        pass

    async def ping(self) -> bool:
        return True


class MongoClassRepository(IClassRepository):
    """MongoDB implementation of the class repository"""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        counters: AsyncIOMotorCollection,
        sequence_name: str = "classes",
    ):
        self.collection = collection
        self.counters = counters
        self.sequence_name = sequence_name

    async def _next_id(self) -> int:
        counter = await self.counters.find_one_and_update(
            {"_id": self.sequence_name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(counter["seq"])

    @staticmethod
    def _to_document(entity: ClassDB) -> Dict[str, Any]:
        document = entity.model_dump(exclude={"id"})
        document["_id"] = entity.id
        return document

    @staticmethod
    def _to_entity(document: Dict[str, Any]) -> ClassDB:
        data = dict(document)
        data["id"] = data.pop("_id")
        return ClassDB.model_validate(data)

    async def save(self, entity: ClassDB) -> ClassDB:
        try:
            if entity.id is None:
                stored = entity.model_copy(update={"id": await self._next_id()})
                await self.collection.insert_one(self._to_document(stored))
                logger.debug(f"Inserted class {stored.id}", metadata={"collection": self.collection.name})
            else:
                stored = entity.model_copy(update={"updated_at": datetime.now(UTC)})
                result = await self.collection.replace_one({"_id": stored.id}, self._to_document(stored))
                if result.matched_count == 0:
                    raise ClassNotFoundError(stored.id)
                logger.debug(f"Replaced class {stored.id}", metadata={"collection": self.collection.name})
            return stored
        except PyMongoError as e:
            logger.error("Failed to save class", error=e, metadata={"classId": entity.id})
            raise PersistenceError(f"Failed to save class: {e}") from e

    async def find_by_id(self, class_id: int) -> Optional[ClassDB]:
        try:
            document = await self.collection.find_one({"_id": class_id})
        except PyMongoError as e:
            logger.error("Failed to read class", error=e, metadata={"classId": class_id})
            raise PersistenceError(f"Failed to read class {class_id}: {e}") from e
        return self._to_entity(document) if document else None

    async def delete_by_id(self, class_id: int) -> bool:
        try:
            result = await self.collection.delete_one({"_id": class_id})
        except PyMongoError as e:
            logger.error("Failed to delete class", error=e, metadata={"classId": class_id})
            raise PersistenceError(f"Failed to delete class {class_id}: {e}") from e
        return result.deleted_count > 0

    async def find_all(self) -> List[ClassDB]:
        try:
            documents = await self.collection.find({}).sort("_id", 1).to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to list classes", error=e)
            raise PersistenceError(f"Failed to list classes: {e}") from e
        return [self._to_entity(document) for document in documents]

    async def ping(self) -> bool:
        try:
            await self.collection.database.command("ping")
            return True
        except PyMongoError:
            return False
