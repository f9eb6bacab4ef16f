"""
Base adapter interface for message queue backends.

All adapters must implement this interface to ensure consistent behavior
across different message bus implementations (NATS JetStream, In-Memory).
The bridge pulls settings messages through a QueueConsumer and publishes
status envelopes through the MessageQueue itself.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class QueueMessage:
    """A message received from a consumer, pending acknowledgment."""
    data: bytes
    topic: str
    # Backend-specific handle used to ack/nack (e.g. a NATS Msg)
    raw: Any = field(default=None, repr=False)
    delivery_count: int = 1


class QueueConsumer(ABC):
    """
    Pull-based consumer bound to one topic and durable subscription.

    Every received message must be settled with exactly one of `ack` or `nack`.
    """

    @abstractmethod
    async def receive(self, timeout: float) -> Optional[QueueMessage]:
        """
        Wait up to `timeout` seconds for the next message.

        Returns:
            The next message, or None if nothing arrived in time

        Raises:
            ReceiveError: If the backend failed while fetching
        """
        pass

    @abstractmethod
    async def ack(self, message: QueueMessage) -> None:
        """Acknowledge a message; it will not be delivered again."""
        pass

    @abstractmethod
    async def nack(self, message: QueueMessage, redeliver: bool = True) -> None:
        """
        Negatively acknowledge a message.

        Args:
            message: The message to reject
            redeliver: When False the message is rejected permanently and the
                       backend must not redeliver it
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the subscription. Unsettled messages are redelivered by the backend."""
        pass


class MessageQueue(ABC):
    """
    Abstract base class for message queue adapters.

    This interface defines the contract that all message bus implementations
    must follow. It keeps the bridge backend-agnostic.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the message bus.

        Raises:
            ConnectionError: If unable to connect to the message bus
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Gracefully disconnect from the message bus.

        Closes every consumer created by `subscribe` and the connection.
        """
        pass

    @abstractmethod
    async def publish(self, topic: str, payload: bytes, timeout: Optional[float] = None) -> None:
        """
        Publish a message to a topic.

        Args:
            topic: The topic to publish to (e.g., "workspace-status")
            payload: Serialized message body
            timeout: Seconds to wait for the broker to accept the message

        Raises:
            PublishError: If the message could not be published
            ConnectionError: If not connected to the message bus
        """
        pass

    @abstractmethod
    async def subscribe(self, topic: str, subscription_name: str) -> QueueConsumer:
        """
        Create a durable pull consumer on a topic.

        Args:
            topic: The topic to consume from (e.g., "workspace-settings")
            subscription_name: Durable subscription shared by bridge replicas

        Raises:
            SubscriptionError: If the subscription could not be created
            ConnectionError: If not connected to the message bus
        """
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if the adapter is connected to the message bus.

        Returns:
            True if connected, False otherwise
        """
        pass

    @property
    def name(self) -> str:
        """Return the adapter name for logging."""
        return self.__class__.__name__


class AdapterError(Exception):
    """Base exception for adapter errors."""
    pass


class PublishError(AdapterError):
    """Raised when a message could not be published."""
    pass


class SubscriptionError(AdapterError):
    """Raised when a subscription could not be created."""
    pass


class ReceiveError(AdapterError):
    """Raised when fetching the next message failed."""
    pass
