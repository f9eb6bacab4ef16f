"""
In-memory resource store for the Workspace Bridge.

This store is primarily used for:
- Local development without a cluster
- Unit testing
- Emulating the workspace controller (see `set_status`)

Objects are held in a dict keyed by name. Every write bumps a global
resource version, and updates are rejected when the caller's version is
stale, as the Kubernetes API server does.
"""
import logging
from typing import Dict, List, Optional

from ..models import Workspace, WorkspaceStatus
from .base import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ResourceStore,
    Subscription,
)

logger = logging.getLogger(__name__)


class MemoryStore(ResourceStore):
    """
    In-memory Workspace store for development and testing.

    Features:
    - Optimistic concurrency on update via resource versions
    - Change subscriptions delivering `(old, new)` pairs
    - Call log of every read and write for assertions in tests
    """

    def __init__(self, namespace: str = "workspaces"):
        """Initialize the memory store."""
        self.namespace = namespace
        self._connected = False
        self._objects: Dict[str, Workspace] = {}
        self._version = 0
        self._subscriptions: List[Subscription] = []
        self.calls: List[str] = []

    async def connect(self) -> None:
        """Mark store as connected."""
        if self._connected:
            logger.warning("Memory store already connected")
            return

        self._connected = True
        logger.info("Memory store connected (in-memory mode)")

    async def disconnect(self) -> None:
        """Disconnect and cancel subscriptions."""
        for subscription in list(self._subscriptions):
            subscription.cancel()
        self._subscriptions.clear()
        self._connected = False
        logger.info("Memory store disconnected")

    async def get(self, name: str) -> Optional[Workspace]:
        self._ensure_connected()
        self.calls.append("get")
        stored = self._objects.get(name)
        return stored.model_copy(deep=True) if stored is not None else None

    async def create(self, workspace: Workspace) -> None:
        self._ensure_connected()
        self.calls.append("create")
        if workspace.name in self._objects:
            raise AlreadyExistsError(f"Workspace {workspace.name} already exists")

        stored = workspace.model_copy(deep=True)
        stored.namespace = self.namespace
        stored.status = None
        stored.resource_version = self._next_version()
        self._objects[workspace.name] = stored
        logger.debug(f"Created workspace {workspace.name} (rv {stored.resource_version})")

    async def update(self, workspace: Workspace) -> None:
        self._ensure_connected()
        self.calls.append("update")
        current = self._objects.get(workspace.name)
        if current is None:
            raise NotFoundError(f"Workspace {workspace.name} not found")
        if workspace.resource_version != current.resource_version:
            raise ConflictError(
                f"Workspace {workspace.name} was modified: "
                f"expected rv {current.resource_version}, got {workspace.resource_version}"
            )

        stored = workspace.model_copy(deep=True)
        stored.namespace = self.namespace
        # Status is owned by the controller and survives spec updates
        stored.status = current.status
        stored.resource_version = self._next_version()
        self._objects[workspace.name] = stored
        await self._notify(current, stored)

    async def delete(self, name: str) -> None:
        self._ensure_connected()
        self.calls.append("delete")
        if self._objects.pop(name, None) is None:
            raise NotFoundError(f"Workspace {name} not found")
        logger.debug(f"Deleted workspace {name}")

    async def subscribe(self, maxsize: int = 100) -> Subscription:
        self._ensure_connected()
        subscription: Subscription

        def remove() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        subscription = Subscription(maxsize=maxsize, on_cancel=remove)
        self._subscriptions.append(subscription)
        logger.info(f"Workspace subscription added ({len(self._subscriptions)} active)")
        return subscription

    @property
    def is_connected(self) -> bool:
        """Check if store is connected."""
        return self._connected

    async def set_status(self, name: str, status: Optional[WorkspaceStatus]) -> Workspace:
        """
        Write a Workspace status, as the controller would.

        Not part of the ResourceStore interface: the bridge never writes
        status. Subscribers receive the resulting `(old, new)` pair.
        """
        current = self._objects.get(name)
        if current is None:
            raise NotFoundError(f"Workspace {name} not found")

        stored = current.model_copy(deep=True)
        stored.status = status.model_copy(deep=True) if status is not None else None
        stored.resource_version = self._next_version()
        self._objects[name] = stored
        await self._notify(current, stored)
        return stored.model_copy(deep=True)

    @property
    def objects(self) -> Dict[str, Workspace]:
        """Snapshot of all stored Workspaces."""
        return {name: ws.model_copy(deep=True) for name, ws in self._objects.items()}

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise ConnectionError("Memory store not connected")

    async def _notify(self, old: Workspace, new: Workspace) -> None:
        for subscription in list(self._subscriptions):
            await subscription.deliver(old.model_copy(deep=True), new.model_copy(deep=True))
