"""
Workspace Resource Stores

This package provides the adapter pattern implementation for the store
holding Workspace objects (Kubernetes custom resources, In-Memory).
"""
from .base import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ResourceStore,
    StoreError,
    Subscription,
)
from .kubernetes_store import KubernetesStore
from .memory_store import MemoryStore

__all__ = [
    "ResourceStore",
    "Subscription",
    "KubernetesStore",
    "MemoryStore",
    "StoreError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConflictError",
]
