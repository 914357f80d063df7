"""Tests for class request/response models"""
import pytest
from pydantic import ValidationError

from class_service.models.school_class import APIResponse, ClassCreate, ClassDB, ClassResponse


class TestClassModels:

    def test_create_requires_non_empty_name(self):
        with pytest.raises(ValidationError):
            ClassCreate(name="")

    def test_create_rejects_overlong_name(self):
        with pytest.raises(ValidationError):
            ClassCreate(name="x" * 256)

    def test_response_from_entity(self):
        response = ClassResponse.from_entity(ClassDB(id=5, name="Geometry"))

        assert response.model_dump() == {"id": 5, "name": "Geometry"}

    def test_api_response_serializes_status_code_alias(self):
        body = APIResponse(status_code=201, message="Class created successfully", data={"id": 1})

        assert body.model_dump(by_alias=True) == {
            "statusCode": 201,
            "message": "Class created successfully",
            "data": {"id": 1},
        }
