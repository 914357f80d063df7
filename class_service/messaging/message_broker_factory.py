"""
Message Broker Factory
Creates the appropriate message broker instance based on configuration
"""

from typing import Optional

from class_service.core.config import config
from class_service.core.logger import logger
from .i_message_broker import IMessageBroker
from .memory_broker import InMemoryBroker, InMemoryBrokerState
from .rabbitmq_broker import RabbitMQBroker

# Broker state shared by every in-memory handle in this process
_memory_state: Optional[InMemoryBrokerState] = None


def get_memory_broker_state() -> InMemoryBrokerState:
    global _memory_state
    if _memory_state is None:
        _memory_state = InMemoryBrokerState()
    return _memory_state


class MessageBrokerFactory:
    """Factory for creating message broker instances"""

    @staticmethod
    def create(broker_type: Optional[str] = None, prefetch_count: Optional[int] = None) -> IMessageBroker:
        """
        Create an unconnected message broker instance

        Args:
            broker_type: "rabbitmq" or "memory"; defaults to MESSAGE_BROKER_TYPE
            prefetch_count: Consumer prefetch; defaults to CONSUMER_PREFETCH_COUNT

        Returns:
            IMessageBroker implementation
        """
        broker_type = (broker_type or config.message_broker_type).lower()

        logger.debug(f"Creating message broker: {broker_type}")

        if broker_type == "rabbitmq":
            return RabbitMQBroker(
                config.rabbitmq_url,
                prefetch_count=prefetch_count or config.consumer_prefetch_count,
            )

        elif broker_type == "memory":
            return InMemoryBroker(state=get_memory_broker_state())

        else:
            raise ValueError(
                f"Unsupported message broker type: {broker_type}. "
                f"Supported types: rabbitmq, memory"
            )
