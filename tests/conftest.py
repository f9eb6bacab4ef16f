"""
Pytest configuration for Workspace Bridge tests.
"""
import asyncio
import json
import os
from typing import Any, Dict

import pytest

# Set test environment variables before the service settings are loaded
os.environ["QUEUE_ADAPTER"] = "memory"
os.environ["STORE_ADAPTER"] = "memory"
os.environ["RECEIVE_TIMEOUT"] = "0.05"
os.environ["AWS_CLUSTER"] = "test-cluster"
os.environ["AWS_FS_ID"] = "fs-test"
os.environ["DEBUG"] = "true"

from workspace_bridge.adapters import MemoryAdapter
from workspace_bridge.operator import ResourceOperator
from workspace_bridge.spec_builder import SpecBuilder
from workspace_bridge.store import MemoryStore


@pytest.fixture(scope="session")
def event_loop_policy():
    """Use default event loop policy."""
    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def builder():
    """Spec builder with fixed cluster-wide values."""
    return SpecBuilder(
        cluster="test-cluster",
        fs_id="fs-test",
        storage_class="test-storage",
        storage_size="10Gi",
        storage_driver="efs.csi.aws.com",
    )


@pytest.fixture
async def store():
    """Connected in-memory resource store."""
    store = MemoryStore()
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture
async def queue():
    """Connected in-memory queue adapter."""
    adapter = MemoryAdapter()
    await adapter.connect()
    yield adapter
    await adapter.disconnect()


@pytest.fixture
def operator(store, builder):
    return ResourceOperator(store, builder)


@pytest.fixture
def settings_payload():
    """Factory for inbound settings payloads as produced upstream."""
    def make(name: str = "geo-1", status: str = "creating", **overrides: Any) -> Dict[str, Any]:
        payload = {
            "name": name,
            "account": "6f1c2a3e-8b7d-4c5e-9f10-1a2b3c4d5e6f",
            "member_group": "geo-team",
            "status": status,
            "stores": [
                {
                    "object": [{"name": "cog"}],
                    "block": [{"name": "scratch"}],
                }
            ],
        }
        payload.update(overrides)
        return payload

    return make


@pytest.fixture
def encode():
    """Serialize a payload the way the upstream publisher does."""
    def _encode(payload: Dict[str, Any]) -> bytes:
        return json.dumps(payload).encode("utf-8")

    return _encode


@pytest.fixture
def eventually():
    """Poll an async-friendly condition until it holds."""
    async def wait(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(interval)

    return wait
