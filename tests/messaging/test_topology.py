"""Tests for the class event broker topology"""
from unittest.mock import MagicMock, call

from class_service.core.config import Config
from class_service.messaging.topology import BrokerTopology


class TestBrokerTopology:

    def test_from_config_uses_defaults(self):
        topology = BrokerTopology.from_config(Config())

        assert topology.exchange_name == "class.exchange"
        assert topology.queue_name == "class.queue"
        assert topology.routing_key == "class.routing.key"
        assert topology.dead_letter_exchange_name == "class.exchange.dlq"
        assert topology.dead_letter_queue_name == "class.queue.dlq"
        assert topology.message_ttl_ms == 300000

    def test_main_queue_arguments_point_at_dead_letter_exchange(self, topology):
        assert topology.main_queue_arguments() == {
            "x-dead-letter-exchange": "class.exchange.dlq",
            "x-dead-letter-routing-key": "class.queue.dlq",
            "x-message-ttl": 300000,
        }

    def test_declare_creates_dead_letter_side_before_main_queue(self, topology):
        broker = MagicMock()

        topology.declare(broker)

        assert broker.mock_calls == [
            call.declare_exchange("class.exchange.dlq", exchange_type="direct", durable=True, auto_delete=False),
            call.declare_queue("class.queue.dlq", durable=True),
            call.bind_queue("class.queue.dlq", "class.exchange.dlq", "class.queue.dlq"),
            call.declare_exchange("class.exchange", exchange_type="direct", durable=True, auto_delete=False),
            call.declare_queue("class.queue", durable=True, arguments=topology.main_queue_arguments()),
            call.bind_queue("class.queue", "class.exchange", "class.routing.key"),
        ]

    def test_declare_is_idempotent_on_memory_broker(self, broker, topology):
        topology.declare(broker)

        assert broker.get_stats("class.queue")["message_count"] == 0
