"""Tests for error handling"""
import json
from unittest.mock import Mock, patch

import pytest
from fastapi import HTTPException
from fastapi.responses import JSONResponse

from class_service.core.errors import (
    BrokerConnectionError,
    ClassNotFoundError,
    ErrorResponse,
    PersistenceError,
    PoisonMessageError,
    PublishNackError,
    TransientDeliveryError,
    UnroutableMessageError,
    error_response_handler,
    http_exception_handler,
)


class TestErrorResponse:
    """Test ErrorResponse exception class"""

    def test_error_response_creation(self):
        error = ErrorResponse("Something went wrong", status_code=400)
        assert error.message == "Something went wrong"
        assert error.status_code == 400
        assert error.details == {}

    def test_error_response_default_status_code(self):
        assert ErrorResponse("Bad request").status_code == 400

    def test_class_not_found(self):
        error = ClassNotFoundError(42)
        assert error.status_code == 404
        assert error.details == {"classId": 42}
        assert str(error) == "Class not found with id: 42"

    def test_persistence_error_is_500(self):
        assert PersistenceError("db down").status_code == 500


class TestTaxonomy:
    """Delivery failures share one base class"""

    @pytest.mark.parametrize("error_cls", [PublishNackError, UnroutableMessageError, BrokerConnectionError])
    def test_transient_delivery_errors(self, error_cls):
        assert issubclass(error_cls, TransientDeliveryError)

    def test_poison_message_error_keeps_marker(self):
        error = PoisonMessageError("POISON_MESSAGE", entity_id=7)
        assert error.marker == "POISON_MESSAGE"
        assert error.entity_id == 7
        assert "7" in str(error)


class TestErrorHandlers:
    """Test error handler functions"""

    @pytest.mark.asyncio
    async def test_error_response_handler(self):
        mock_request = Mock()
        mock_request.url = "http://test/api/v1/classes/9"
        mock_request.method = "GET"

        with patch('class_service.core.errors.logger'):
            response = await error_response_handler(mock_request, ClassNotFoundError(9))

        assert isinstance(response, JSONResponse)
        assert response.status_code == 404
        assert json.loads(response.body) == {
            "error": "Class not found with id: 9",
            "details": {"classId": 9},
        }

    @pytest.mark.asyncio
    async def test_http_exception_handler(self):
        mock_request = Mock()
        mock_request.url = "http://test/"
        mock_request.method = "POST"

        with patch('class_service.core.errors.logger'):
            response = await http_exception_handler(mock_request, HTTPException(status_code=403, detail="Forbidden"))

        assert response.status_code == 403
        assert json.loads(response.body) == {"error": "Forbidden"}
