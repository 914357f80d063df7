"""
Broker topology for class events.

    class.exchange (direct) --class.routing.key--> class.queue
        x-dead-letter-exchange    = class.exchange.dlq
        x-dead-letter-routing-key = class.queue.dlq
        x-message-ttl             = 300000

    class.exchange.dlq (direct) --class.queue.dlq--> class.queue.dlq

A message rejected without requeue, or left on class.queue past its TTL,
is re-published by the broker to the dead-letter exchange. There is no
other retry path.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from class_service.core.config import Config, config
from class_service.core.logger import logger
from class_service.messaging.i_message_broker import IMessageBroker


@dataclass(frozen=True)
class BrokerTopology:
    exchange_name: str
    queue_name: str
    routing_key: str
    dead_letter_exchange_name: str
    dead_letter_queue_name: str
    message_ttl_ms: int = 300000

    @classmethod
    def from_config(cls, settings: Optional[Config] = None) -> "BrokerTopology":
        settings = settings or config
        return cls(
            exchange_name=settings.class_exchange_name,
            queue_name=settings.class_queue_name,
            routing_key=settings.class_routing_key,
            dead_letter_exchange_name=settings.class_dead_letter_exchange_name,
            dead_letter_queue_name=settings.class_dead_letter_queue_name,
            message_ttl_ms=settings.message_ttl_ms,
        )

    @property
    def dead_letter_routing_key(self) -> str:
        # The DLQ is bound under its own name
        return self.dead_letter_queue_name

    def main_queue_arguments(self) -> Dict[str, Any]:
        return {
            "x-dead-letter-exchange": self.dead_letter_exchange_name,
            "x-dead-letter-routing-key": self.dead_letter_routing_key,
            "x-message-ttl": self.message_ttl_ms,
        }

    def declare(self, broker: IMessageBroker) -> None:
        """Declare exchanges, queues and bindings on the broker (idempotent)"""
        broker.declare_exchange(self.dead_letter_exchange_name, exchange_type="direct", durable=True, auto_delete=False)
        broker.declare_queue(self.dead_letter_queue_name, durable=True)
        broker.bind_queue(self.dead_letter_queue_name, self.dead_letter_exchange_name, self.dead_letter_routing_key)

        broker.declare_exchange(self.exchange_name, exchange_type="direct", durable=True, auto_delete=False)
        broker.declare_queue(self.queue_name, durable=True, arguments=self.main_queue_arguments())
        broker.bind_queue(self.queue_name, self.exchange_name, self.routing_key)

        logger.info(
            "Broker topology declared",
            metadata={
                "exchange": self.exchange_name,
                "queue": self.queue_name,
                "routingKey": self.routing_key,
                "deadLetterExchange": self.dead_letter_exchange_name,
                "deadLetterQueue": self.dead_letter_queue_name,
                "messageTtlMs": self.message_ttl_ms,
            },
        )
