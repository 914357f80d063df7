"""
Dead-letter diagnostics.
Each operation publishes a message the consumer is known to reject, so the
DLQ path can be exercised against a running broker.
"""

from fastapi.responses import JSONResponse

from class_service.core.logger import logger
from class_service.models.class_event import ClassEvent, EventAction, EventStatus, TestDirective
from class_service.services.class_event_publisher import ClassEventPublisher

MALFORMED_BODY = b'{"invalidField":"this will cause json parsing to fail","wrongStructure":true}'


def _result(message: str, outcomes) -> JSONResponse:
    delivered = sum(1 for outcome in outcomes if outcome.delivered)
    status_code = 200 if delivered == len(outcomes) else 500
    return JSONResponse(
        status_code=status_code,
        content={
            "message": message if status_code == 200 else f"Error: {delivered}/{len(outcomes)} messages confirmed",
            "outcomes": [outcome.value for outcome in outcomes],
        },
    )


async def send_poison_message(publisher: ClassEventPublisher) -> JSONResponse:
    logger.info("Sending poison message to trigger DLQ")
    event = ClassEvent(
        entity_id=-999,
        entity_name="POISON_MESSAGE_TEST",
        action=EventAction.CREATE,
        status=EventStatus.SUCCESS,
        message="This message is designed to fail in consumer",
        directive=TestDirective.POISON_MESSAGE,
    )
    outcome = await publisher.publish(event)
    return _result("Poison message sent to trigger DLQ", [outcome])


async def send_malformed_message(publisher: ClassEventPublisher) -> JSONResponse:
    logger.info("Sending malformed message to trigger DLQ")
    outcome = await publisher.publish_raw(MALFORMED_BODY)
    return _result("Malformed message sent to trigger DLQ", [outcome])


async def send_exception_trigger(publisher: ClassEventPublisher) -> JSONResponse:
    logger.info("Sending message to trigger runtime exception in consumer")
    event = ClassEvent(
        entity_id=1,
        entity_name="THROW_RUNTIME_EXCEPTION",
        action=EventAction.CREATE,
        status=EventStatus.SUCCESS,
        message="Consumer should fail while processing this",
        directive=TestDirective.RUNTIME_EXCEPTION,
    )
    outcome = await publisher.publish(event)
    return _result("Exception trigger message sent to DLQ testing", [outcome])


async def batch_failure_test(publisher: ClassEventPublisher, count: int) -> JSONResponse:
    logger.info(f"Sending {count} messages to test DLQ batch processing")
    outcomes = []
    for i in range(1, count + 1):
        event = ClassEvent(
            entity_id=i,
            entity_name=f"BATCH_FAILURE_TEST_{i}",
            action=EventAction.CREATE,
            status=EventStatus.SUCCESS,
            message=f"Batch test message {i}",
            directive=TestDirective.BATCH_FAILURE,
        )
        outcomes.append(await publisher.publish(event))
    logger.info(f"Sent {count} messages for batch DLQ testing")
    return _result(f"Sent {count} messages for DLQ batch testing", outcomes)
