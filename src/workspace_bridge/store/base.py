"""
Base adapter interface for Workspace resource stores.

All stores must implement this interface so the operator and the status
watcher stay independent of the backing API (Kubernetes, in-memory, ...).
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

from ..models import Workspace

# An observed change: (previous object, current object)
ChangePair = Tuple[Workspace, Workspace]


class Subscription:
    """
    Cancellable handle on a stream of Workspace changes.

    The store pushes `(old, new)` pairs with `deliver()`; consumers iterate
    the handle with `async for`. Pairs are delivered through one bounded
    queue, so a slow consumer holds up delivery for every object.
    """

    def __init__(self, maxsize: int = 100, on_cancel: Optional[Callable[[], None]] = None):
        self._queue: asyncio.Queue[ChangePair] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()
        self._on_cancel = on_cancel

    @property
    def cancelled(self) -> bool:
        return self._closed.is_set()

    async def deliver(self, old: Workspace, new: Workspace) -> None:
        """Queue a change pair, waiting for room. Dropped once cancelled."""
        if self.cancelled:
            return
        await self._race(self._queue.put((old, new)))

    def cancel(self) -> None:
        """Stop the stream. Pending pairs are discarded."""
        if self.cancelled:
            return
        self._closed.set()
        if self._on_cancel is not None:
            self._on_cancel()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangePair:
        if self.cancelled:
            raise StopAsyncIteration
        pair = await self._race(self._queue.get())
        if pair is None:
            raise StopAsyncIteration
        return pair

    async def _race(self, operation):
        """Run a queue operation unless the subscription closes first."""
        op_task = asyncio.ensure_future(operation)
        closed_task = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {op_task, closed_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (op_task, closed_task):
                if not task.done():
                    task.cancel()
        if op_task in done:
            return op_task.result()
        return None


class ResourceStore(ABC):
    """
    Abstract base class for Workspace resource stores.

    Implementations must be safe for concurrent use by the settings bridge
    and the status watcher.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the connection to the backing store.

        Raises:
            ConnectionError: If the store cannot be reached or configured
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection and stop every active subscription."""
        pass

    @abstractmethod
    async def get(self, name: str) -> Optional[Workspace]:
        """
        Read a Workspace by name.

        Returns:
            The stored Workspace (with its resource version), or None if it
            does not exist

        Raises:
            StoreError: On any failure other than the object being absent
        """
        pass

    @abstractmethod
    async def create(self, workspace: Workspace) -> None:
        """
        Create a new Workspace.

        Raises:
            AlreadyExistsError: If an object with the same name exists
            StoreError: On any other failure
        """
        pass

    @abstractmethod
    async def update(self, workspace: Workspace) -> None:
        """
        Replace the spec of an existing Workspace.

        The workspace must carry the resource version read before the write.

        Raises:
            NotFoundError: If the object does not exist
            ConflictError: If the resource version is stale
            StoreError: On any other failure
        """
        pass

    @abstractmethod
    async def delete(self, name: str) -> None:
        """
        Delete a Workspace by name.

        Raises:
            NotFoundError: If the object does not exist
            StoreError: On any other failure
        """
        pass

    @abstractmethod
    async def subscribe(self) -> Subscription:
        """
        Subscribe to Workspace changes.

        Returns:
            A Subscription yielding `(old, new)` pairs for every modification,
            in per-object order
        """
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the store is connected."""
        pass

    @property
    def name(self) -> str:
        """Return the store name for logging."""
        return self.__class__.__name__


class StoreError(Exception):
    """Base exception for resource store errors."""
    pass


class NotFoundError(StoreError):
    """Raised when the requested Workspace does not exist."""
    pass


class AlreadyExistsError(StoreError):
    """Raised when creating a Workspace whose name is taken."""
    pass


class ConflictError(StoreError):
    """Raised when an update carries a stale resource version."""
    pass
