"""
Workspace Bridge Queue Adapters

This package provides the adapter pattern implementation for the message
bus carrying settings and status messages (NATS JetStream, In-Memory).
"""
from .base import (
    AdapterError,
    MessageQueue,
    PublishError,
    QueueConsumer,
    QueueMessage,
    ReceiveError,
    SubscriptionError,
)
from .nats_adapter import NatsAdapter
from .memory_adapter import MemoryAdapter

__all__ = [
    "MessageQueue",
    "QueueConsumer",
    "QueueMessage",
    "NatsAdapter",
    "MemoryAdapter",
    "AdapterError",
    "PublishError",
    "ReceiveError",
    "SubscriptionError",
]
