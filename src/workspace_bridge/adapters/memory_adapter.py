"""
In-memory adapter for the Workspace Bridge.

This adapter is primarily used for:
- Local development without external dependencies
- Unit testing
- Demo purposes

Each topic is an asyncio queue. Consumers pull from it, nacked messages are
put back until `max_deliver` is reached, after which they land in the
dead-letter list. Published payloads are also recorded per topic.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from .base import MessageQueue, PublishError, QueueConsumer, QueueMessage, ReceiveError

logger = logging.getLogger(__name__)


class MemoryConsumer(QueueConsumer):
    """Consumer reading from one in-memory topic queue."""

    def __init__(self, adapter: "MemoryAdapter", topic: str):
        self._adapter = adapter
        self._topic = topic
        self._closed = False
        self.acked: List[QueueMessage] = []
        self.nacked: List[QueueMessage] = []
        self.terminated: List[QueueMessage] = []

    @property
    def closed(self) -> bool:
        return self._closed

    async def receive(self, timeout: float) -> Optional[QueueMessage]:
        if self._closed:
            raise ReceiveError(f"Consumer for {self._topic} is closed")
        queue = self._adapter._topic_queue(self._topic)
        try:
            return await asyncio.wait_for(queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def ack(self, message: QueueMessage) -> None:
        self.acked.append(message)

    async def nack(self, message: QueueMessage, redeliver: bool = True) -> None:
        if not redeliver:
            self.terminated.append(message)
            return

        self.nacked.append(message)
        if message.delivery_count >= self._adapter.max_deliver:
            logger.warning(
                f"Message on {self._topic} exceeded {self._adapter.max_deliver} deliveries; dead-lettering"
            )
            self._adapter.dead_letters.append(message)
            return

        redelivery = QueueMessage(
            data=message.data,
            topic=message.topic,
            delivery_count=message.delivery_count + 1,
        )
        self._adapter._topic_queue(self._topic).put_nowait(redelivery)

    async def close(self) -> None:
        self._closed = True


class MemoryAdapter(MessageQueue):
    """
    In-memory queue adapter for development and testing.

    Features:
    - FIFO delivery per topic
    - Redelivery on nack, dead-lettering after `max_deliver` attempts
    - Record of every published payload (`published`)
    """

    def __init__(self, max_deliver: int = 5):
        """Initialize the memory adapter."""
        self.max_deliver = max_deliver
        self._connected = False
        self._queues: Dict[str, asyncio.Queue] = {}
        self._consumers: List[MemoryConsumer] = []
        self.published: Dict[str, List[bytes]] = {}
        self.dead_letters: List[QueueMessage] = []

    async def connect(self) -> None:
        """Mark adapter as connected."""
        if self._connected:
            logger.warning("Memory adapter already connected")
            return

        self._connected = True
        logger.info("Memory adapter connected (in-memory mode)")

    async def disconnect(self) -> None:
        """Disconnect and close consumers."""
        for consumer in self._consumers:
            await consumer.close()
        self._consumers.clear()
        self._connected = False
        logger.info("Memory adapter disconnected")

    async def publish(self, topic: str, payload: bytes, timeout: Optional[float] = None) -> None:
        """
        Publish a message to a topic.

        The payload is recorded and made available to consumers of the topic.
        """
        if not self._connected:
            raise ConnectionError("Memory adapter not connected")
        if not isinstance(payload, (bytes, bytearray)):
            raise PublishError(f"Payload for {topic} must be bytes")

        logger.debug(f"Publishing to topic: {topic}")
        self.published.setdefault(topic, []).append(bytes(payload))
        self._topic_queue(topic).put_nowait(QueueMessage(data=bytes(payload), topic=topic))

    async def subscribe(self, topic: str, subscription_name: str) -> QueueConsumer:
        """Create a consumer for a topic. All consumers of a topic share its queue."""
        if not self._connected:
            raise ConnectionError("Memory adapter not connected")

        consumer = MemoryConsumer(self, topic)
        self._consumers.append(consumer)
        logger.info(f"Subscribed to {topic} (subscription: {subscription_name})")
        return consumer

    @property
    def is_connected(self) -> bool:
        """Check if adapter is connected."""
        return self._connected

    def pending(self, topic: str) -> int:
        """Number of messages waiting on a topic."""
        return self._topic_queue(topic).qsize()

    def _topic_queue(self, topic: str) -> asyncio.Queue:
        if topic not in self._queues:
            self._queues[topic] = asyncio.Queue()
        return self._queues[topic]
