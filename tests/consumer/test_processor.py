"""Tests for ClassEventProcessor"""
import json
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from class_service.consumer.handlers.handler_registry import HANDLERS
from class_service.consumer.processed_events import InMemoryProcessedEventStore
from class_service.consumer.processor import ClassEventProcessor, Disposition
from class_service.messaging.i_message_broker import Delivery
from class_service.models.class_event import ClassEvent, EventAction, EventStatus, TestDirective
from class_service.utils.correlation_id import get_correlation_id


@pytest.fixture
def handlers():
    return {
        EventAction.CREATE: MagicMock(),
        EventAction.UPDATE: MagicMock(),
        EventAction.DELETE: MagicMock(),
    }


@pytest.fixture
def processor(handlers):
    return ClassEventProcessor(
        handlers=handlers,
        processed_events=InMemoryProcessedEventStore(),
        accept_legacy_markers=True,
    )


def body_for(**overrides):
    fields = {
        "entity_id": 1,
        "entity_name": "Algebra",
        "action": EventAction.CREATE,
        "status": EventStatus.SUCCESS,
        "message": "Class created successfully",
    }
    fields.update(overrides)
    return ClassEvent(**fields).to_wire()


class TestDisposition:

    def test_valid_event_is_accepted_and_dispatched(self, processor, handlers):
        assert processor.handle(body_for(), "corr-1") is Disposition.ACCEPT

        handlers[EventAction.CREATE].assert_called_once()
        event, correlation_id = handlers[EventAction.CREATE].call_args.args
        assert event.entity_id == 1
        assert correlation_id == "corr-1"

    def test_dispatch_by_action(self, processor, handlers):
        processor.handle(body_for(action=EventAction.DELETE))

        handlers[EventAction.DELETE].assert_called_once()
        handlers[EventAction.CREATE].assert_not_called()

    @pytest.mark.parametrize("body", [
        b"garbage",
        b'{"invalidField":"this will cause json parsing to fail","wrongStructure":true}',
    ])
    def test_malformed_body_is_rejected(self, processor, handlers, body):
        assert processor.handle(body) is Disposition.REJECT
        for handler in handlers.values():
            handler.assert_not_called()

    @pytest.mark.parametrize("directive", list(TestDirective))
    def test_every_directive_is_rejected(self, processor, handlers, directive):
        assert processor.handle(body_for(directive=directive)) is Disposition.REJECT
        handlers[EventAction.CREATE].assert_not_called()

    def test_legacy_marker_is_rejected(self, processor):
        assert processor.handle(body_for(entity_name="POISON_MESSAGE_TEST")) is Disposition.REJECT

    def test_legacy_marker_accepted_when_disabled(self, handlers):
        processor = ClassEventProcessor(handlers=handlers, accept_legacy_markers=False)

        assert processor.handle(body_for(entity_name="POISON_MESSAGE_TEST")) is Disposition.ACCEPT

    def test_handler_exception_is_rejected(self, processor, handlers):
        handlers[EventAction.CREATE].side_effect = RuntimeError("downstream failed")

        assert processor.handle(body_for()) is Disposition.REJECT

    def test_unknown_action_is_accepted(self, processor, handlers):
        body = json.dumps({"entityId": 1, "action": "ARCHIVE", "status": "SUCCESS"}).encode()

        assert processor.handle(body) is Disposition.ACCEPT
        for handler in handlers.values():
            handler.assert_not_called()

    def test_action_without_handler_is_accepted(self):
        processor = ClassEventProcessor(handlers={})

        assert processor.handle(body_for()) is Disposition.ACCEPT


class TestIdempotency:

    def test_redelivery_does_not_rerun_handler(self, processor, handlers):
        body = body_for()

        assert processor.handle(body) is Disposition.ACCEPT
        assert processor.handle(body) is Disposition.ACCEPT

        handlers[EventAction.CREATE].assert_called_once()

    def test_failed_attempt_can_be_retried(self, processor, handlers):
        body = body_for()
        handlers[EventAction.CREATE].side_effect = [RuntimeError("transient"), None]

        assert processor.handle(body) is Disposition.REJECT
        assert processor.handle(body) is Disposition.ACCEPT
        assert handlers[EventAction.CREATE].call_count == 2

    def test_updates_in_the_same_second_are_both_handled(self, processor, handlers):
        timestamp = datetime(2025, 1, 31, 14, 5, 9)
        first = body_for(action=EventAction.UPDATE, entity_id=5, entity_name="Renamed A", timestamp=timestamp)
        second = body_for(action=EventAction.UPDATE, entity_id=5, entity_name="Renamed B", timestamp=timestamp)

        assert processor.handle(first, message_id="msg-1") is Disposition.ACCEPT
        assert processor.handle(second, message_id="msg-2") is Disposition.ACCEPT

        names = [call.args[0].entity_name for call in handlers[EventAction.UPDATE].call_args_list]
        assert names == ["Renamed A", "Renamed B"]

    def test_redelivered_message_id_is_handled_once(self, processor, handlers):
        body = body_for(action=EventAction.UPDATE)

        processor.handle(body, message_id="msg-1")
        processor.handle(body, message_id="msg-1")

        handlers[EventAction.UPDATE].assert_called_once()

    def test_process_keys_on_delivery_message_id(self, processor, handlers):
        body = body_for(action=EventAction.UPDATE, timestamp=datetime(2025, 1, 31, 14, 5, 9))

        for tag, message_id in enumerate(["msg-1", "msg-2", "msg-1"], start=1):
            processor.process(Delivery(
                body=body,
                delivery_tag=tag,
                exchange="class.exchange",
                routing_key="class.routing.key",
                message_id=message_id,
            ))

        assert handlers[EventAction.UPDATE].call_count == 2


class TestProcessCallback:

    def test_process_sets_correlation_id_from_properties(self, processor):
        delivery = Delivery(
            body=body_for(),
            delivery_tag=1,
            exchange="class.exchange",
            routing_key="class.routing.key",
            correlation_id="from-publisher",
        )

        assert processor.process(delivery) is True
        assert get_correlation_id() == "from-publisher"

    def test_process_returns_false_for_reject(self, processor):
        delivery = Delivery(body=b"garbage", delivery_tag=1, exchange="class.exchange", routing_key="class.routing.key")

        assert processor.process(delivery) is False

    def test_default_handlers_come_from_registry(self):
        assert ClassEventProcessor().handlers == HANDLERS
