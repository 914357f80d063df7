"""
Message Broker Interface
Defines the contract shared by the RabbitMQ adapter and the in-process broker.

Publishing is confirmed and mandatory: a publish either returns normally
(the broker confirmed it) or raises a TransientDeliveryError subclass.
Consuming hands each delivery to a callback that returns True to acknowledge
or False to reject without requeue.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


@dataclass(frozen=True)
class Delivery:
    """A message handed to a consumer callback"""
    body: bytes
    delivery_tag: int
    exchange: str
    routing_key: str
    redelivered: bool = False
    message_id: Optional[str] = None
    correlation_id: Optional[str] = None
    headers: Dict[str, Any] = field(default_factory=dict)

    @property
    def deaths(self) -> List[Dict[str, Any]]:
        return list(self.headers.get("x-death") or [])

    @property
    def death_reason(self) -> Optional[str]:
        deaths = self.deaths
        return deaths[0].get("reason") if deaths else None

    @property
    def death_count(self) -> int:
        return sum(int(d.get("count", 0)) for d in self.deaths)


MessageCallback = Callable[[Delivery], bool]


class IMessageBroker(ABC):
    """Abstract base class for message broker implementations"""

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the message broker"""

    @abstractmethod
    def declare_exchange(
        self,
        name: str,
        exchange_type: str = "direct",
        durable: bool = True,
        auto_delete: bool = False,
    ) -> None:
        """Declare an exchange (idempotent)"""

    @abstractmethod
    def declare_queue(
        self,
        name: str,
        durable: bool = True,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Declare a queue (idempotent)"""

    @abstractmethod
    def bind_queue(self, queue_name: str, exchange_name: str, routing_key: str) -> None:
        """Bind a queue to an exchange with a routing key"""

    @abstractmethod
    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        message_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish a message and wait for the broker's confirmation

        Raises:
            UnroutableMessageError: no binding matched the routing key
            PublishNackError: the broker refused the message
            BrokerConnectionError: the broker is unreachable
        """

    @abstractmethod
    def consume(self, queue_name: str, callback: MessageCallback) -> None:
        """
        Consume messages until stop_consuming() is called

        Args:
            queue_name: Name of the queue to consume from
            callback: Returns True to ack, False to reject without requeue
        """

    @abstractmethod
    def stop_consuming(self) -> None:
        """Stop a running consume() loop; safe to call from another thread"""

    @abstractmethod
    def get(self, queue_name: str) -> Optional[Delivery]:
        """Fetch and acknowledge a single message, or None if the queue is empty"""

    @abstractmethod
    def get_stats(self, queue_name: str) -> Dict[str, Any]:
        """Get queue statistics (message and consumer counts)"""

    @abstractmethod
    def is_healthy(self) -> bool:
        """Check if the broker connection is healthy"""

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the message broker"""
