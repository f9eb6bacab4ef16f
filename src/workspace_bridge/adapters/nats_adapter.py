"""
NATS adapter for the Workspace Bridge.

This adapter implements the MessageQueue interface using NATS JetStream so
settings messages get at-least-once delivery with explicit ack/nak, and
status envelopes are confirmed by the stream on publish.
"""
import logging
from typing import List, Optional

import nats
from nats.aio.client import Client as NatsClient
from nats.errors import TimeoutError as NatsTimeoutError
from nats.js import JetStreamContext

from .base import (
    MessageQueue,
    PublishError,
    QueueConsumer,
    QueueMessage,
    ReceiveError,
    SubscriptionError,
)

logger = logging.getLogger(__name__)


class NatsConsumer(QueueConsumer):
    """Durable JetStream pull consumer for a single subject."""

    def __init__(self, subscription: JetStreamContext.PullSubscription, subject: str, topic: str):
        self._subscription = subscription
        self._subject = subject
        self._topic = topic
        self._closed = False

    async def receive(self, timeout: float) -> Optional[QueueMessage]:
        if self._closed:
            raise ReceiveError(f"Consumer for {self._subject} is closed")

        try:
            msgs = await self._subscription.fetch(batch=1, timeout=timeout)
        except NatsTimeoutError:
            return None
        except Exception as e:
            raise ReceiveError(f"Failed to fetch from {self._subject}: {e}") from e

        if not msgs:
            return None

        msg = msgs[0]
        try:
            delivery_count = msg.metadata.num_delivered
        except Exception:
            delivery_count = 1

        return QueueMessage(
            data=msg.data,
            topic=self._topic,
            raw=msg,
            delivery_count=delivery_count,
        )

    async def ack(self, message: QueueMessage) -> None:
        await message.raw.ack()
        logger.debug(f"Acked message on {self._subject}")

    async def nack(self, message: QueueMessage, redeliver: bool = True) -> None:
        if redeliver:
            await message.raw.nak()
            logger.debug(f"Nacked message on {self._subject} for redelivery")
        else:
            # TERM tells JetStream to stop redelivering this message
            await message.raw.term()
            logger.debug(f"Terminated message on {self._subject}")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._subscription.unsubscribe()
            logger.info(f"Closed consumer on {self._subject}")
        except Exception as e:
            logger.warning(f"Error closing consumer on {self._subject}: {e}")


class NatsAdapter(MessageQueue):
    """
    NATS JetStream adapter for the Workspace Bridge.

    Streams covering the settings and status subjects are provisioned
    outside the bridge.

    Features:
    - Automatic reconnection
    - Durable pull consumers shared by bridge replicas
    - Terminal rejection (TERM) for messages that can never be processed
    """

    def __init__(
        self,
        url: str = "nats://localhost:4222",
        reconnect_time_wait: int = 2,
        max_reconnect_attempts: int = -1,
        subject_prefix: str = "",
    ):
        """
        Initialize the NATS adapter.

        Args:
            url: NATS server URL
            reconnect_time_wait: Time to wait between reconnection attempts (seconds)
            max_reconnect_attempts: Max reconnection attempts (-1 for infinite)
            subject_prefix: Optional prefix prepended to every topic
        """
        self._url = url
        self._reconnect_time_wait = reconnect_time_wait
        self._max_reconnect_attempts = max_reconnect_attempts
        self._subject_prefix = subject_prefix
        self._client: NatsClient | None = None
        self._js: JetStreamContext | None = None
        self._consumers: List[NatsConsumer] = []

    async def connect(self) -> None:
        """Connect to NATS server with auto-reconnection."""
        if self._client is not None and self._client.is_connected:
            logger.warning("Already connected to NATS")
            return

        logger.info(f"Connecting to NATS at {self._url}")

        try:
            self._client = await nats.connect(
                servers=[self._url],
                reconnect_time_wait=self._reconnect_time_wait,
                max_reconnect_attempts=self._max_reconnect_attempts,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback,
                closed_cb=self._closed_callback,
            )
            self._js = self._client.jetstream()
            logger.info(f"Connected to NATS server: {self._client.connected_url}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise ConnectionError(f"Failed to connect to NATS at {self._url}: {e}") from e

    async def disconnect(self) -> None:
        """Gracefully disconnect from NATS."""
        if self._client is None:
            return

        logger.info("Disconnecting from NATS")

        for consumer in self._consumers:
            await consumer.close()
        self._consumers.clear()

        # Drain and close
        try:
            await self._client.drain()
        except Exception as e:
            logger.warning(f"Error draining NATS connection: {e}")

        self._client = None
        self._js = None
        logger.info("Disconnected from NATS")

    async def publish(self, topic: str, payload: bytes, timeout: Optional[float] = None) -> None:
        """
        Publish a message to a JetStream subject and wait for the stream ack.

        Args:
            topic: Topic name (mapped to a NATS subject)
            payload: Serialized message body
            timeout: Seconds to wait for the stream ack
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to NATS")

        subject = self._topic_to_subject(topic)

        try:
            if timeout is None:
                await self._js.publish(subject, payload)
            else:
                await self._js.publish(subject, payload, timeout=timeout)
            logger.debug(f"Published message to {subject}")
        except Exception as e:
            logger.error(f"Failed to publish to {subject}: {e}")
            raise PublishError(f"Failed to publish to {subject}: {e}") from e

    async def subscribe(self, topic: str, subscription_name: str) -> QueueConsumer:
        """
        Create a durable pull subscription.

        Args:
            topic: Topic name (mapped to a NATS subject)
            subscription_name: Durable consumer name
        """
        if not self.is_connected:
            raise ConnectionError("Not connected to NATS")

        subject = self._topic_to_subject(topic)
        try:
            psub = await self._js.pull_subscribe(subject, durable=subscription_name)
        except Exception as e:
            logger.error(f"Failed to subscribe to {subject}: {e}")
            raise SubscriptionError(f"Failed to subscribe to {subject}: {e}") from e

        consumer = NatsConsumer(psub, subject, topic)
        self._consumers.append(consumer)
        logger.info(f"Subscribed to {subject} (durable: {subscription_name})")
        return consumer

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS."""
        return self._client is not None and self._client.is_connected

    def _topic_to_subject(self, topic: str) -> str:
        """
        Convert topic name to NATS subject.

        Examples (prefix "eodhp"):
            "workspace-settings" -> "eodhp.workspace-settings"
        """
        if self._subject_prefix:
            return f"{self._subject_prefix}.{topic}"
        return topic

    # NATS callbacks for connection lifecycle

    async def _error_callback(self, e: Exception) -> None:
        """Called on NATS errors."""
        logger.error(f"NATS error: {e}")

    async def _disconnected_callback(self) -> None:
        """Called when disconnected from NATS."""
        logger.warning("Disconnected from NATS server")

    async def _reconnected_callback(self) -> None:
        """Called when reconnected to NATS."""
        logger.info(f"Reconnected to NATS server: {self._client.connected_url}")

    async def _closed_callback(self) -> None:
        """Called when NATS connection is closed."""
        logger.info("NATS connection closed")
