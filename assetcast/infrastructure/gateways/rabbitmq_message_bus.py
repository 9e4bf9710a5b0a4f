"""
Infrastructure Gateway - RabbitMQ publisher

Publishes raw history events on a topic exchange. Topics use MQTT-style
``/`` separators and are mapped onto AMQP routing keys, so MQTT subscribers
bridged through the broker's MQTT plugin receive the same events.
"""

import asyncio
import json
import threading
from typing import Any, Mapping, Optional

import pika
import pika.exceptions
import structlog

from assetcast.domain.entities.errors import MessageBusError
from assetcast.domain.gateways.message_bus import IMessageBus

logger = structlog.get_logger(__name__)


def routing_key_for(topic: str) -> str:
    return topic.strip("/").replace("/", ".")


class RabbitMQMessageBus(IMessageBus):
    """Implementation of the message bus using a pika blocking connection."""

    def __init__(self, broker_url: str, exchange: str = "amq.topic"):
        self._parameters = pika.URLParameters(broker_url)
        self._exchange = exchange
        self._connection: Optional[pika.BlockingConnection] = None
        self._channel = None
        # pika connections are not thread safe and publishes run in worker threads.
        self._lock = threading.Lock()

    async def publish(
        self, topic: str, payload: Mapping[str, Any], properties: Mapping[str, str]
    ) -> None:
        body = json.dumps(payload, default=str).encode("utf-8")
        await asyncio.to_thread(self._publish, routing_key_for(topic), body, properties)

    async def close(self) -> None:
        await asyncio.to_thread(self._close)

    def _publish(
        self, routing_key: str, body: bytes, headers: Mapping[str, str]
    ) -> None:
        with self._lock:
            try:
                channel = self._ensure_channel()
                channel.basic_publish(
                    exchange=self._exchange,
                    routing_key=routing_key,
                    body=body,
                    properties=pika.BasicProperties(
                        content_type="application/json",
                        delivery_mode=2,
                        headers=dict(headers),
                    ),
                )
            except pika.exceptions.AMQPError as e:
                logger.warning(
                    "bus.publish_failed", routing_key=routing_key, error=repr(e)
                )
                self._reset()
                raise MessageBusError(
                    f"Publishing to {routing_key} failed: {e!r}",
                    {"routing_key": routing_key},
                ) from e

    def _ensure_channel(self):
        if self._connection is None or self._connection.is_closed:
            self._connection = pika.BlockingConnection(self._parameters)
            self._channel = None
        if self._channel is None or self._channel.is_closed:
            self._channel = self._connection.channel()
        return self._channel

    def _reset(self) -> None:
        connection, self._connection, self._channel = self._connection, None, None
        if connection is not None and connection.is_open:
            try:
                connection.close()
            except pika.exceptions.AMQPError as e:
                logger.debug("bus.close_failed", error=repr(e))

    def _close(self) -> None:
        with self._lock:
            self._reset()
