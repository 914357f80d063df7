"""Tests for the MongoDB class repository"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import PyMongoError

from class_service.core.errors import ClassNotFoundError, PersistenceError
from class_service.models.school_class import ClassDB
from class_service.repositories.class_repository import MongoClassRepository


@pytest.fixture
def mock_collection():
    collection = AsyncMock()
    collection.name = "classes"
    return collection


@pytest.fixture
def mock_counters():
    counters = AsyncMock()
    counters.find_one_and_update.return_value = {"_id": "classes", "seq": 12}
    return counters


@pytest.fixture
def repository(mock_collection, mock_counters):
    return MongoClassRepository(mock_collection, mock_counters)


class TestMongoClassRepository:

    @pytest.mark.asyncio
    async def test_insert_allocates_sequential_id(self, repository, mock_collection, mock_counters):
        saved = await repository.save(ClassDB(name="Algebra"))

        assert saved.id == 12
        mock_counters.find_one_and_update.assert_awaited_once()
        document = mock_collection.insert_one.call_args.args[0]
        assert document["_id"] == 12
        assert document["name"] == "Algebra"
        assert "id" not in document

    @pytest.mark.asyncio
    async def test_save_existing_replaces_document(self, repository, mock_collection, mock_counters):
        mock_collection.replace_one.return_value = SimpleNamespace(matched_count=1)

        await repository.save(ClassDB(id=3, name="Renamed"))

        mock_counters.find_one_and_update.assert_not_awaited()
        filter_, document = mock_collection.replace_one.call_args.args
        assert filter_ == {"_id": 3}
        assert document["name"] == "Renamed"
        assert "upsert" not in mock_collection.replace_one.call_args.kwargs

    @pytest.mark.asyncio
    async def test_save_does_not_recreate_deleted_class(self, repository, mock_collection):
        mock_collection.replace_one.return_value = SimpleNamespace(matched_count=0)

        with pytest.raises(ClassNotFoundError):
            await repository.save(ClassDB(id=3, name="Renamed"))

    @pytest.mark.asyncio
    async def test_find_by_id(self, repository, mock_collection):
        mock_collection.find_one.return_value = {"_id": 3, "name": "Biology"}

        entity = await repository.find_by_id(3)

        assert entity.id == 3
        assert entity.name == "Biology"

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, repository, mock_collection):
        mock_collection.find_one.return_value = None

        assert await repository.find_by_id(3) is None

    @pytest.mark.asyncio
    async def test_delete_reports_result(self, repository, mock_collection):
        mock_collection.delete_one.return_value = SimpleNamespace(deleted_count=0)

        assert await repository.delete_by_id(3) is False

    @pytest.mark.asyncio
    async def test_find_all_sorted_by_id(self, repository, mock_collection):
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.to_list = AsyncMock(return_value=[{"_id": 1, "name": "A"}, {"_id": 2, "name": "B"}])
        mock_collection.find = MagicMock(return_value=cursor)

        entities = await repository.find_all()

        cursor.sort.assert_called_once_with("_id", 1)
        assert [e.name for e in entities] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_driver_errors_become_persistence_errors(self, repository, mock_collection):
        mock_collection.insert_one.side_effect = PyMongoError("connection refused")

        with pytest.raises(PersistenceError):
            await repository.save(ClassDB(name="Algebra"))
