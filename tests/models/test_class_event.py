"""Tests for the ClassEvent wire model"""
import json
from datetime import datetime

import pytest

from class_service.core.errors import EventValidationError
from class_service.models.class_event import (
    ClassEvent,
    EventAction,
    EventStatus,
    TestDirective,
)


class TestClassEventWireFormat:
    """Encoding to the camelCase JSON document"""

    def test_to_wire_uses_camel_case_and_timestamp_format(self):
        event = ClassEvent(
            entity_id=42,
            entity_name="Algebra I",
            action=EventAction.CREATE,
            status=EventStatus.SUCCESS,
            message="Class created successfully",
            timestamp=datetime(2025, 1, 31, 14, 5, 9),
        )

        document = json.loads(event.to_wire())

        assert document == {
            "entityId": 42,
            "entityName": "Algebra I",
            "action": "CREATE",
            "status": "SUCCESS",
            "message": "Class created successfully",
            "timestamp": "2025-01-31 14:05:09",
            "payload": None,
            "directive": None,
        }

    def test_from_wire_accepts_legacy_field_names(self):
        body = json.dumps({
            "classId": 7,
            "className": "Biology",
            "action": "UPDATE",
            "status": "SUCCESS",
            "timestamp": "2025-02-01 08:00:00",
        }).encode()

        event = ClassEvent.from_wire(body)

        assert event.entity_id == 7
        assert event.entity_name == "Biology"
        assert event.action is EventAction.UPDATE
        assert event.timestamp == datetime(2025, 2, 1, 8, 0, 0)

    def test_from_wire_keeps_unknown_action_as_string(self):
        event = ClassEvent.from_wire(b'{"entityId": 1, "action": "ARCHIVE"}')

        assert event.action == "ARCHIVE"
        assert not event.is_known_action
        assert event.action_name == "ARCHIVE"

    def test_from_wire_reads_directive(self):
        event = ClassEvent.from_wire(b'{"entityId": 1, "action": "CREATE", "directive": "POISON_MESSAGE"}')

        assert event.directive is TestDirective.POISON_MESSAGE

    @pytest.mark.parametrize("body", [
        b"not json at all",
        b'{"invalidField": "x", "wrongStructure": true}',
        b'{"entityId": "abc", "action": "CREATE"}',
        b"",
    ])
    def test_from_wire_rejects_malformed_bodies(self, body):
        with pytest.raises(EventValidationError):
            ClassEvent.from_wire(body)


class TestClassEventFactories:
    """Factory helpers used by the publisher"""

    def test_success_event(self):
        event = ClassEvent.success(3, "Chemistry", EventAction.DELETE, "Class deleted successfully")

        assert event.status is EventStatus.SUCCESS
        assert event.action is EventAction.DELETE
        assert event.directive is None
        assert event.timestamp.microsecond == 0

    def test_failed_event_carries_error_message(self):
        event = ClassEvent.failed(None, "Physics", EventAction.CREATE, "database unavailable")

        assert event.status is EventStatus.FAILED
        assert event.entity_id is None
        assert event.message == "database unavailable"

    def test_pending_event(self):
        assert ClassEvent.pending(1, "Art", EventAction.CREATE).status is EventStatus.PENDING

    def test_event_is_immutable(self):
        event = ClassEvent.pending(1, "Art", EventAction.CREATE)

        with pytest.raises(Exception):
            event.entity_id = 2
