"""
Inbound settings consumer.

The bridge pulls workspace settings messages from the queue, hands them to
the ResourceOperator and settles each one based on the outcome:

- processed successfully (including discarded unknown statuses) -> ack
- payload does not decode as WorkspaceSettings -> nack without redelivery
- operator raised (store unavailable, conflict, missing workspace) -> nack,
  so the broker redelivers up to its own limit and then dead-letters

Optional buffering: with `buffer_size > 0` received messages go through a
bounded in-process queue drained by a single worker. When that queue is
full, newly received messages are nacked for redelivery instead of blocking
the receive loop.
"""
import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from pydantic import ValidationError

from .adapters import QueueConsumer, QueueMessage, ReceiveError
from .models import WorkspaceSettings
from .operator import ResourceOperator


class BridgeState(str, Enum):
    """Lifecycle of a SettingsBridge."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class SettingsBridge:
    """
    Consumes settings messages one at a time and applies them to the store.

    Lifecycle: IDLE -> RUNNING (start/run) -> STOPPING (stop or task
    cancellation) -> STOPPED (in-flight message settled, consumer closed).
    """

    def __init__(
        self,
        consumer: QueueConsumer,
        operator: ResourceOperator,
        receive_timeout: float = 1.0,
        receive_error_backoff: float = 1.0,
        buffer_size: int = 0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the bridge.

        Args:
            consumer: Pull consumer on the settings topic
            operator: Applies decoded settings to the resource store
            receive_timeout: Max seconds a single receive waits; bounds how
                             long a stop request takes to be noticed
            receive_error_backoff: Seconds to wait after a failed receive
            buffer_size: Capacity of the internal buffer (0 disables it)
            logger: Logger to report through
        """
        self._consumer = consumer
        self._operator = operator
        self._receive_timeout = receive_timeout
        self._receive_error_backoff = receive_error_backoff
        self._buffer: asyncio.Queue | None = (
            asyncio.Queue(maxsize=buffer_size) if buffer_size > 0 else None
        )
        self.logger = logger or logging.getLogger(__name__)

        self._state = BridgeState.IDLE
        self._task: asyncio.Task | None = None
        self._worker: asyncio.Task | None = None
        self._stopped = asyncio.Event()

        self._processed = 0
        self._failed = 0
        self._rejected = 0
        self._dropped = 0

    @property
    def state(self) -> BridgeState:
        return self._state

    def stats(self) -> Dict[str, int]:
        """Counters for the health endpoint."""
        return {
            "processed": self._processed,
            "failed": self._failed,
            "rejected": self._rejected,
            "dropped": self._dropped,
            "buffered": self._buffer.qsize() if self._buffer is not None else 0,
        }

    async def start(self) -> None:
        """Start the consume loop in a background task."""
        if self._state != BridgeState.IDLE:
            self.logger.warning(f"Settings bridge cannot start from state {self._state.value}")
            return

        self._state = BridgeState.RUNNING
        self._task = asyncio.create_task(self._consume())
        self.logger.info("Settings bridge started")

    async def stop(self) -> None:
        """
        Request shutdown and wait for it to complete.

        Works whether the loop was started with start() or is being driven
        by run(). The message being processed, if any, is allowed to finish.
        """
        if self._state == BridgeState.IDLE:
            self._state = BridgeState.STOPPED
            await self._consumer.close()
            return
        if self._state == BridgeState.STOPPED:
            return

        self._state = BridgeState.STOPPING
        self.logger.info("Stopping settings bridge")

        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self.logger.error(f"Settings bridge exited with error: {e}", exc_info=True)
        else:
            # Loop owned by a run() caller
            await self._stopped.wait()

    async def run(self) -> None:
        """
        Run the consume loop until stopped.

        Can be awaited directly instead of using start(); cancelling the
        awaiting task triggers a graceful stop.
        """
        if self._state != BridgeState.IDLE:
            self.logger.warning(f"Settings bridge cannot run from state {self._state.value}")
            return

        self._state = BridgeState.RUNNING
        await self._consume()

    async def _consume(self) -> None:
        if self._buffer is not None:
            self._worker = asyncio.create_task(self._drain_buffer())

        try:
            while self._state == BridgeState.RUNNING:
                try:
                    message = await self._consumer.receive(self._receive_timeout)
                except ReceiveError as e:
                    self.logger.error(f"Failed to receive settings message: {e}")
                    await asyncio.sleep(self._receive_error_backoff)
                    continue

                if message is None:
                    continue

                if self._buffer is not None:
                    await self._enqueue(message)
                else:
                    await self._process(message)
        finally:
            await self._shutdown()

    async def handle_message(self, message: QueueMessage) -> None:
        """Decode, apply and settle a single message."""
        try:
            settings = WorkspaceSettings.model_validate_json(message.data)
        except ValidationError as e:
            self._rejected += 1
            self.logger.error(f"Failed to decode settings message on {message.topic}: {e}")
            await self._settle(message, ack=False, redeliver=False)
            return

        try:
            await self._operator.process_message(settings)
        except Exception as e:
            self._failed += 1
            self.logger.error(
                f"Failed to process settings for workspace {settings.name} "
                f"(status {settings.status}, delivery {message.delivery_count}): {e}"
            )
            await self._settle(message, ack=False, redeliver=True)
            return

        self._processed += 1
        await self._settle(message, ack=True)
        self.logger.debug(f"Settings for workspace {settings.name} processed and acknowledged")

    async def _process(self, message: QueueMessage) -> None:
        """Handle a message without letting cancellation cut it short."""
        handling = asyncio.ensure_future(self.handle_message(message))
        try:
            await asyncio.shield(handling)
        except asyncio.CancelledError:
            self._state = BridgeState.STOPPING
            self.logger.info("Cancellation requested; finishing in-flight settings message")
            await handling
            raise

    async def _enqueue(self, message: QueueMessage) -> None:
        try:
            self._buffer.put_nowait(message)
        except asyncio.QueueFull:
            self._dropped += 1
            self.logger.warning(
                f"Settings buffer full ({self._buffer.maxsize}); rejecting message for redelivery"
            )
            await self._settle(message, ack=False, redeliver=True)

    async def _drain_buffer(self) -> None:
        """Worker processing buffered messages one at a time."""
        while True:
            message = await self._buffer.get()
            if message is None:
                return
            await self._process(message)

    async def _settle(self, message: QueueMessage, ack: bool, redeliver: bool = True) -> None:
        """Ack or nack a message. Failures leave it to broker redelivery."""
        try:
            if ack:
                await self._consumer.ack(message)
            else:
                await self._consumer.nack(message, redeliver=redeliver)
        except Exception as e:
            action = "acknowledge" if ack else "reject"
            self.logger.error(f"Failed to {action} settings message: {e}")

    async def _shutdown(self) -> None:
        self._state = BridgeState.STOPPING

        if self._worker is not None:
            # Buffered but unstarted messages go back to the broker
            while not self._buffer.empty():
                pending = self._buffer.get_nowait()
                if pending is not None:
                    await self._settle(pending, ack=False, redeliver=True)
            self._buffer.put_nowait(None)
            await self._worker
            self._worker = None

        try:
            await self._consumer.close()
        except Exception as e:
            self.logger.warning(f"Error closing settings consumer: {e}")

        self._state = BridgeState.STOPPED
        self._stopped.set()
        self.logger.info("Settings bridge stopped")
