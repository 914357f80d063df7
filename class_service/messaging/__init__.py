from .i_message_broker import Delivery, IMessageBroker, MessageCallback
from .memory_broker import InMemoryBroker, InMemoryBrokerState
from .message_broker_factory import MessageBrokerFactory
from .rabbitmq_broker import RabbitMQBroker
from .topology import BrokerTopology

__all__ = [
    "BrokerTopology",
    "Delivery",
    "IMessageBroker",
    "InMemoryBroker",
    "InMemoryBrokerState",
    "MessageBrokerFactory",
    "MessageCallback",
    "RabbitMQBroker",
]
