"""
Poison message classification.

A class event is poison when it carries a TestDirective. Producers that
predate the directive field signalled the same conditions with magic strings
in the message, name or payload fields; those are still recognised here, and
only here, while accept_legacy_markers is enabled.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from class_service.models.class_event import ClassEvent, TestDirective

# Exact match on the message field
LEGACY_MESSAGE_MARKERS = {
    "TEST_FAILURE_TRIGGER": TestDirective.FAIL_PROCESSING,
    "TRIGGER_CONSUMER_FAILURE": TestDirective.CONSUMER_FAILURE,
}

# Exact match on the entity name field
LEGACY_NAME_MARKERS = {
    "POISON_MESSAGE_TEST": TestDirective.POISON_MESSAGE,
    "THROW_RUNTIME_EXCEPTION": TestDirective.RUNTIME_EXCEPTION,
}

# Substring match on the stringified payload
LEGACY_PAYLOAD_MARKERS = {
    "BATCH_FAILURE_TRIGGER": TestDirective.BATCH_FAILURE,
    "TRIGGER_CONSUMER_FAILURE": TestDirective.CONSUMER_FAILURE,
}


@dataclass(frozen=True)
class PoisonMarker:
    directive: TestDirective
    source: str  # directive | message | entityName | payload

    def __str__(self) -> str:
        return f"{self.directive.value} (from {self.source})"


def _payload_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, default=str)
    except (TypeError, ValueError):
        return str(payload)


def classify(event: ClassEvent, accept_legacy_markers: bool = True) -> Optional[PoisonMarker]:
    """
    Inspect an event for poison markers

    Args:
        event: Decoded class event
        accept_legacy_markers: Also match the legacy string markers

    Returns:
        The first marker found, or None for a clean event
    """
    if event.directive is not None:
        return PoisonMarker(event.directive, "directive")

    if not accept_legacy_markers:
        return None

    if event.message in LEGACY_MESSAGE_MARKERS:
        return PoisonMarker(LEGACY_MESSAGE_MARKERS[event.message], "message")

    if event.entity_name in LEGACY_NAME_MARKERS:
        return PoisonMarker(LEGACY_NAME_MARKERS[event.entity_name], "entityName")

    if event.payload is not None:
        text = _payload_text(event.payload)
        for marker, directive in LEGACY_PAYLOAD_MARKERS.items():
            if marker in text:
                return PoisonMarker(directive, "payload")

    return None
