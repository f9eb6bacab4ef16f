"""
Outbound status publisher.

Watches Workspace objects and publishes a StatusEnvelope whenever the
controller-written status changes. Updates that leave the status untouched
(spec edits, metadata churn, resyncs) are suppressed.

Publishing is best effort: one attempt per change, bounded by
`publish_timeout`. Failures are logged and dropped.
"""
import asyncio
import logging
from typing import Dict, Optional

from .adapters import MessageQueue
from .models import StatusEnvelope, Workspace, WorkspaceStatus
from .store import ResourceStore, Subscription


class StatusWatcher:
    """Publishes Workspace status changes to the outbound topic."""

    def __init__(
        self,
        store: ResourceStore,
        queue: MessageQueue,
        topic: str,
        publish_timeout: float = 5.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._store = store
        self._queue = queue
        self._topic = topic
        self._publish_timeout = publish_timeout
        self.logger = logger or logging.getLogger(__name__)

        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None

        self._published = 0
        self._suppressed = 0
        self._failed = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def stats(self) -> Dict[str, int]:
        return {
            "published": self._published,
            "suppressed": self._suppressed,
            "failed": self._failed,
        }

    async def start(self) -> None:
        """Subscribe to Workspace changes and start publishing."""
        if self.is_running:
            self.logger.warning("Status watcher is already running")
            return

        self._subscription = await self._store.subscribe()
        self._task = asyncio.create_task(self._run(self._subscription))
        self.logger.info(f"Listening for Workspace status updates (publishing to {self._topic})")

    async def stop(self) -> None:
        """Cancel the subscription and wait for the watcher to exit."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self.logger.info("Status watcher stopped")

    async def _run(self, subscription: Subscription) -> None:
        async for old, new in subscription:
            await self.handle_update(old, new)

    async def handle_update(self, old: Workspace, new: Workspace) -> None:
        """Publish the new status if it differs from the old one."""
        old_status = old.status or WorkspaceStatus()
        new_status = new.status or WorkspaceStatus()

        if not new_status.differs_from(old_status):
            self._suppressed += 1
            self.logger.debug(f"No change in status of workspace {new.name}; skipping")
            return

        envelope = StatusEnvelope(
            workspace_name=new.name,
            namespace=new.namespace,
            status=new_status,
        )

        try:
            await asyncio.wait_for(
                self._queue.publish(self._topic, envelope.to_bytes(), timeout=self._publish_timeout),
                timeout=self._publish_timeout,
            )
        except asyncio.TimeoutError:
            self._failed += 1
            self.logger.error(
                f"Timed out after {self._publish_timeout}s publishing status of workspace {new.name}"
            )
            return
        except Exception as e:
            self._failed += 1
            self.logger.error(f"Failed to publish status of workspace {new.name}: {e}")
            return

        self._published += 1
        self.logger.info(
            f"Published status of workspace {new.name} (state {new_status.state or 'unknown'})"
        )
