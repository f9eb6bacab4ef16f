"""
Workspace Bridge - Main FastAPI Application

Runs the two halves of the bridge side by side:
- SettingsBridge: workspace-settings topic -> Workspace custom resources
- StatusWatcher: Workspace status changes -> workspace-status topic

The HTTP surface only reports health; all work happens in background tasks
started from the application lifespan.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from . import __version__
from .adapters import MemoryAdapter, MessageQueue, NatsAdapter
from .bridge import BridgeState, SettingsBridge
from .config import settings
from .operator import ResourceOperator
from .spec_builder import SpecBuilder
from .store import KubernetesStore, MemoryStore, ResourceStore
from .watcher import StatusWatcher

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global component instances
queue: MessageQueue | None = None
store: ResourceStore | None = None
bridge: SettingsBridge | None = None
watcher: StatusWatcher | None = None


# =============================================================================
# Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    queue_adapter: str = Field(..., description="Active queue adapter")
    queue_connected: bool = Field(..., description="Whether the queue is connected")
    store_adapter: str = Field(..., description="Active resource store")
    store_connected: bool = Field(..., description="Whether the store is connected")
    bridge_state: str = Field(..., description="Settings bridge lifecycle state")
    watcher_running: bool = Field(..., description="Whether the status watcher is running")
    bridge_stats: Dict[str, int] = Field(default_factory=dict)
    watcher_stats: Dict[str, int] = Field(default_factory=dict)


# =============================================================================
# Application Lifecycle
# =============================================================================


def get_queue() -> MessageQueue:
    """
    Factory function to create the appropriate queue adapter based on configuration.
    """
    adapter_type = settings.queue_adapter.lower()

    if adapter_type == "nats":
        return NatsAdapter(
            url=settings.nats_url,
            reconnect_time_wait=settings.nats_reconnect_time_wait,
            max_reconnect_attempts=settings.nats_max_reconnect_attempts,
            subject_prefix=settings.nats_subject_prefix,
        )
    elif adapter_type == "memory":
        return MemoryAdapter()
    else:
        raise ValueError(f"Unknown queue adapter type: {adapter_type}")


def get_store() -> ResourceStore:
    """
    Factory function to create the appropriate resource store based on configuration.
    """
    store_type = settings.store_adapter.lower()

    if store_type == "kubernetes":
        return KubernetesStore(
            group=settings.workspace_group,
            version=settings.workspace_version,
            plural=settings.workspace_plural,
            kind=settings.workspace_kind,
            namespace=settings.workspace_namespace,
            request_timeout=settings.kube_request_timeout,
        )
    elif store_type == "memory":
        return MemoryStore(namespace=settings.workspace_namespace)
    else:
        raise ValueError(f"Unknown store adapter type: {store_type}")


async def shutdown_components() -> None:
    """Stop and disconnect whatever has been set up, in reverse start order."""
    if bridge is not None:
        await bridge.stop()
    if watcher is not None:
        await watcher.stop()
    if store is not None:
        await store.disconnect()
    if queue is not None:
        await queue.disconnect()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup (connect adapters, start bridge and watcher) and
    shutdown (stop consuming, stop watching, disconnect). A failed startup
    releases whatever was already connected before re-raising.
    """
    global queue, store, bridge, watcher

    # Startup
    logger.info(
        f"Starting Workspace Bridge with {settings.queue_adapter} queue "
        f"and {settings.store_adapter} store"
    )
    bridge = None
    watcher = None
    queue = get_queue()
    store = get_store()

    try:
        await queue.connect()
        await store.connect()

        watcher = StatusWatcher(
            store=store,
            queue=queue,
            topic=settings.status_topic,
            publish_timeout=settings.publish_timeout,
        )
        await watcher.start()

        consumer = await queue.subscribe(settings.settings_topic, settings.settings_subscription)
        bridge = SettingsBridge(
            consumer=consumer,
            operator=ResourceOperator(store, SpecBuilder.from_settings(settings)),
            receive_timeout=settings.receive_timeout,
            receive_error_backoff=settings.receive_error_backoff,
            buffer_size=settings.settings_buffer_size,
        )
        await bridge.start()
    except Exception as e:
        logger.error(f"Workspace Bridge failed to start: {e}")
        await shutdown_components()
        raise

    logger.info(f"Workspace Bridge ready on port {settings.service_port}")

    yield

    # Shutdown
    logger.info("Shutting down Workspace Bridge")
    await shutdown_components()
    logger.info("Workspace Bridge shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Workspace Bridge",
    description="Applies workspace settings to Workspace resources and publishes their status",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Reports adapter connectivity and the state of both bridge directions.
    """
    connected = bool(queue and queue.is_connected and store and store.is_connected)
    running = bool(
        bridge and bridge.state == BridgeState.RUNNING and watcher and watcher.is_running
    )
    return HealthResponse(
        status="healthy" if connected and running else "degraded",
        queue_adapter=queue.name if queue else "none",
        queue_connected=queue.is_connected if queue else False,
        store_adapter=store.name if store else "none",
        store_connected=store.is_connected if store else False,
        bridge_state=bridge.state.value if bridge else "idle",
        watcher_running=watcher.is_running if watcher else False,
        bridge_stats=bridge.stats() if bridge else {},
        watcher_stats=watcher.stats() if watcher else {},
    )


@app.get("/", tags=["Info"])
async def root() -> Dict[str, Any]:
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "settings_topic": settings.settings_topic,
        "status_topic": settings.status_topic,
    }


def run() -> None:
    """Console entry point."""
    uvicorn.run(
        "workspace_bridge.main:app",
        host="0.0.0.0",
        port=settings.service_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
