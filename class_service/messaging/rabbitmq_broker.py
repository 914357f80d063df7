"""
RabbitMQ Broker Implementation
Implements the IMessageBroker interface for RabbitMQ on a pika BlockingConnection.

A BlockingConnection and its channel belong to one thread. Every consumer
worker opens its own RabbitMQBroker; the publisher serialises access to its
instance with a lock.
"""

import time
from typing import Any, Dict, Optional

import pika
import pika.exceptions

from class_service.core.errors import (
    BrokerConnectionError,
    PublishNackError,
    UnroutableMessageError,
)
from class_service.core.logger import logger
from .i_message_broker import Delivery, IMessageBroker, MessageCallback


class RabbitMQBroker(IMessageBroker):
    """RabbitMQ implementation of IMessageBroker"""

    def __init__(
        self,
        rabbitmq_url: str,
        prefetch_count: int = 10,
        confirm_delivery: bool = True,
    ):
        """
        Initialize RabbitMQ broker

        Args:
            rabbitmq_url: RabbitMQ connection URL
            prefetch_count: Unacknowledged deliveries allowed per consumer
            confirm_delivery: Put the channel in publisher-confirm mode
        """
        self.rabbitmq_url = rabbitmq_url
        self.prefetch_count = prefetch_count
        self.confirm_delivery = confirm_delivery
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None
        self._consumer_tag: Optional[str] = None
        self._is_connected = False

    def connect(self) -> None:
        """Connect to RabbitMQ"""
        try:
            logger.info("Connecting to RabbitMQ...")

            parameters = pika.URLParameters(self.rabbitmq_url)
            parameters.heartbeat = 600
            parameters.blocked_connection_timeout = 300

            self.connection = pika.BlockingConnection(parameters)
            self.channel = self.connection.channel()

            if self.confirm_delivery:
                self.channel.confirm_delivery()

            self.channel.basic_qos(prefetch_count=self.prefetch_count)

            self._is_connected = True
            logger.info("✅ RabbitMQ connected successfully")

        except pika.exceptions.AMQPError as e:
            logger.error(f"❌ Failed to connect to RabbitMQ: {e}")
            self._is_connected = False
            raise BrokerConnectionError(f"Failed to connect to RabbitMQ: {e}") from e

    def _require_channel(self):
        if not self.channel:
            raise RuntimeError("Channel not initialized. Call connect() first.")
        return self.channel

    def declare_exchange(
        self,
        name: str,
        exchange_type: str = "direct",
        durable: bool = True,
        auto_delete: bool = False,
    ) -> None:
        self._require_channel().exchange_declare(
            exchange=name,
            exchange_type=exchange_type,
            durable=durable,
            auto_delete=auto_delete,
        )
        logger.debug(f"Exchange declared: {name}")

    def declare_queue(
        self,
        name: str,
        durable: bool = True,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            self._require_channel().queue_declare(queue=name, durable=durable, arguments=arguments)
        except pika.exceptions.ChannelClosedByBroker as e:
            # PRECONDITION_FAILED: the queue exists with different arguments
            logger.error(
                f"❌ Queue declaration rejected by broker: {name}",
                error=e,
                metadata={"queue": name, "arguments": arguments},
            )
            raise
        logger.debug(f"Queue declared: {name}")

    def bind_queue(self, queue_name: str, exchange_name: str, routing_key: str) -> None:
        self._require_channel().queue_bind(queue=queue_name, exchange=exchange_name, routing_key=routing_key)
        logger.debug(f"Queue {queue_name} bound to {exchange_name} with key {routing_key}")

    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        message_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ) -> None:
        channel = self._require_channel()

        properties = pika.BasicProperties(
            content_type="application/json",
            delivery_mode=pika.DeliveryMode.Persistent,
            message_id=message_id,
            correlation_id=correlation_id,
            headers=headers,
            timestamp=int(time.time()),
        )

        try:
            channel.basic_publish(
                exchange=exchange,
                routing_key=routing_key,
                body=body,
                properties=properties,
                mandatory=True,
            )
        except pika.exceptions.UnroutableError as e:
            raise UnroutableMessageError(
                f"Message returned by broker: no queue bound to {exchange} with key {routing_key}"
            ) from e
        except pika.exceptions.NackError as e:
            raise PublishNackError(f"Broker nacked message for {exchange}/{routing_key}") from e
        except (pika.exceptions.AMQPConnectionError, pika.exceptions.AMQPChannelError) as e:
            self._is_connected = False
            raise BrokerConnectionError(f"Publish failed, broker unavailable: {e}") from e

    def consume(self, queue_name: str, callback: MessageCallback) -> None:
        """Start consuming messages from RabbitMQ (blocking)"""
        channel = self._require_channel()

        def _on_message(ch, method, properties, body: bytes) -> None:
            delivery = Delivery(
                body=body,
                delivery_tag=method.delivery_tag,
                exchange=method.exchange,
                routing_key=method.routing_key,
                redelivered=bool(method.redelivered),
                message_id=properties.message_id,
                correlation_id=properties.correlation_id,
                headers=dict(properties.headers or {}),
            )

            try:
                accepted = callback(delivery)
            except Exception as e:
                logger.error(f"❌ Error processing message: {e}", error=e)
                accepted = False

            if accepted:
                ch.basic_ack(delivery_tag=method.delivery_tag)
            else:
                # Reject without requeue so the broker dead-letters it
                ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

        self._consumer_tag = channel.basic_consume(
            queue=queue_name,
            on_message_callback=_on_message,
            auto_ack=False,
        )

        logger.info(f"🎯 Message consumer started - listening on queue: {queue_name}")

        try:
            channel.start_consuming()
        except pika.exceptions.AMQPError as e:
            self._is_connected = False
            logger.error(f"Error while consuming: {e}", error=e)
            raise BrokerConnectionError(f"Consumer on {queue_name} lost its connection: {e}") from e

    def stop_consuming(self) -> None:
        if self.connection is None or self.channel is None:
            return
        if self.connection.is_open:
            self.connection.add_callback_threadsafe(self.channel.stop_consuming)

    def get(self, queue_name: str) -> Optional[Delivery]:
        method, properties, body = self._require_channel().basic_get(queue=queue_name, auto_ack=True)
        if method is None:
            return None
        return Delivery(
            body=body,
            delivery_tag=method.delivery_tag,
            exchange=method.exchange,
            routing_key=method.routing_key,
            redelivered=bool(method.redelivered),
            message_id=properties.message_id,
            correlation_id=properties.correlation_id,
            headers=dict(properties.headers or {}),
        )

    def get_stats(self, queue_name: str) -> Dict[str, Any]:
        """Get RabbitMQ queue statistics"""
        channel = self._require_channel()

        try:
            queue = channel.queue_declare(queue=queue_name, passive=True)

            return {
                "queue": queue_name,
                "message_count": queue.method.message_count,
                "consumer_count": queue.method.consumer_count,
                "connected": self._is_connected,
            }
        except pika.exceptions.AMQPError as e:
            logger.error(f"❌ Error getting queue stats: {e}")
            return {
                "queue": queue_name,
                "error": str(e),
                "connected": self._is_connected,
            }

    def is_healthy(self) -> bool:
        """Check if broker connection is healthy"""
        return (
            self._is_connected
            and self.connection is not None
            and self.connection.is_open
            and self.channel is not None
            and self.channel.is_open
        )

    def disconnect(self) -> None:
        """Close RabbitMQ connection"""
        try:
            logger.info("🛑 Closing RabbitMQ connection...")

            if self.channel is not None and self.channel.is_open:
                self.channel.close()

            if self.connection is not None and self.connection.is_open:
                self.connection.close()
                logger.info("🔌 RabbitMQ connection closed")

        except pika.exceptions.AMQPError as e:
            logger.error(f"❌ Error closing RabbitMQ connection: {e}")
            raise
        finally:
            self._is_connected = False
