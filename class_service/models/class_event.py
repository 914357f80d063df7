"""
Class lifecycle event exchanged between the publisher and the consumers.

The wire shape is a flat JSON document with camelCase field names:

    {
        "entityId": 42,
        "entityName": "Algebra I",
        "action": "CREATE",
        "status": "SUCCESS",
        "message": "Class created successfully",
        "timestamp": "2025-01-31 14:05:09",
        "payload": null,
        "directive": null
    }

``directive`` is the only field the consumer treats as a control signal.
"""

from datetime import datetime, UTC
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_serializer

from class_service.core.errors import EventValidationError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)


class EventAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class EventStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class TestDirective(str, Enum):
    """Synthetic failure directives used to exercise the dead-letter path"""
    __test__ = False  # keep pytest from collecting this enum

    FAIL_PROCESSING = "FAIL_PROCESSING"
    POISON_MESSAGE = "POISON_MESSAGE"
    RUNTIME_EXCEPTION = "RUNTIME_EXCEPTION"
    BATCH_FAILURE = "BATCH_FAILURE"
    CONSUMER_FAILURE = "CONSUMER_FAILURE"


class ClassEvent(BaseModel):
    """Immutable class lifecycle event"""

    model_config = ConfigDict(frozen=True)

    entity_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("entityId", "classId", "entity_id"),
        serialization_alias="entityId",
    )
    entity_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("entityName", "className", "entity_name"),
        serialization_alias="entityName",
    )
    # Unknown action strings are kept as plain str so the consumer can decide
    action: Union[EventAction, str] = Field(union_mode="left_to_right")
    status: EventStatus = EventStatus.PENDING
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    payload: Optional[Any] = None
    directive: Optional[TestDirective] = None

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return value.strftime(TIMESTAMP_FORMAT)

    @property
    def is_known_action(self) -> bool:
        return isinstance(self.action, EventAction)

    @property
    def action_name(self) -> str:
        return self.action.value if isinstance(self.action, EventAction) else str(self.action)

    @classmethod
    def pending(cls, entity_id: Optional[int], entity_name: Optional[str], action: EventAction) -> "ClassEvent":
        return cls(entity_id=entity_id, entity_name=entity_name, action=action, status=EventStatus.PENDING)

    @classmethod
    def success(
        cls,
        entity_id: Optional[int],
        entity_name: Optional[str],
        action: EventAction,
        message: str,
        payload: Any = None,
    ) -> "ClassEvent":
        return cls(
            entity_id=entity_id,
            entity_name=entity_name,
            action=action,
            status=EventStatus.SUCCESS,
            message=message,
            payload=payload,
        )

    @classmethod
    def failed(
        cls,
        entity_id: Optional[int],
        entity_name: Optional[str],
        action: EventAction,
        error_message: str,
    ) -> "ClassEvent":
        return cls(
            entity_id=entity_id,
            entity_name=entity_name,
            action=action,
            status=EventStatus.FAILED,
            message=error_message,
        )

    def to_wire(self) -> bytes:
        """Serialize to the JSON wire format"""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_wire(cls, body: bytes) -> "ClassEvent":
        """
        Decode a message body.

        Raises:
            EventValidationError: body is not JSON or violates the event schema
        """
        try:
            return cls.model_validate_json(body)
        except ValidationError as e:
            raise EventValidationError(f"Malformed class event: {e.error_count()} validation error(s)") from e
