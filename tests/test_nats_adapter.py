"""
Tests for the NATS JetStream adapter with mocked client objects.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from nats.errors import TimeoutError as NatsTimeoutError

from workspace_bridge.adapters import (
    NatsAdapter,
    PublishError,
    QueueMessage,
    ReceiveError,
    SubscriptionError,
)
from workspace_bridge.adapters.nats_adapter import NatsConsumer


def make_msg(data=b"{}", delivered=1):
    msg = MagicMock()
    msg.data = data
    msg.metadata.num_delivered = delivered
    msg.ack = AsyncMock()
    msg.nak = AsyncMock()
    msg.term = AsyncMock()
    return msg


@pytest.fixture
def psub():
    sub = MagicMock()
    sub.fetch = AsyncMock()
    sub.unsubscribe = AsyncMock()
    return sub


@pytest.fixture
def consumer(psub):
    return NatsConsumer(psub, "eodhp.workspace-settings", "workspace-settings")


class TestNatsConsumer:
    """Tests for pull consumer behaviour."""

    async def test_receive(self, consumer, psub):
        psub.fetch.return_value = [make_msg(b'{"name": "geo-1"}', delivered=3)]

        message = await consumer.receive(timeout=1.0)

        psub.fetch.assert_awaited_once_with(batch=1, timeout=1.0)
        assert message.data == b'{"name": "geo-1"}'
        assert message.topic == "workspace-settings"
        assert message.delivery_count == 3

    async def test_receive_timeout_is_empty(self, consumer, psub):
        psub.fetch.side_effect = NatsTimeoutError()

        assert await consumer.receive(timeout=0.1) is None

    async def test_receive_failure(self, consumer, psub):
        psub.fetch.side_effect = ConnectionResetError("gone")

        with pytest.raises(ReceiveError):
            await consumer.receive(timeout=0.1)

    async def test_settlement(self, consumer):
        msg = make_msg()
        message = QueueMessage(data=msg.data, topic="workspace-settings", raw=msg)

        await consumer.ack(message)
        await consumer.nack(message)
        await consumer.nack(message, redeliver=False)

        msg.ack.assert_awaited_once()
        msg.nak.assert_awaited_once()
        msg.term.assert_awaited_once()

    async def test_close(self, consumer, psub):
        await consumer.close()
        await consumer.close()

        psub.unsubscribe.assert_awaited_once()
        with pytest.raises(ReceiveError):
            await consumer.receive(timeout=0.1)


class TestNatsAdapter:
    """Tests for connection, publish and subscribe."""

    @pytest.fixture
    def nats_client(self):
        nc = MagicMock()
        nc.is_connected = True
        nc.connected_url = "nats://localhost:4222"
        nc.drain = AsyncMock()
        js = MagicMock()
        js.publish = AsyncMock()
        js.pull_subscribe = AsyncMock(return_value=MagicMock(unsubscribe=AsyncMock()))
        nc.jetstream.return_value = js
        return nc

    @pytest.fixture
    async def adapter(self, nats_client):
        adapter = NatsAdapter(subject_prefix="eodhp")
        with patch("workspace_bridge.adapters.nats_adapter.nats.connect", AsyncMock(return_value=nats_client)):
            await adapter.connect()
        yield adapter
        await adapter.disconnect()

    async def test_connect(self, adapter):
        assert adapter.is_connected
        assert adapter.name == "NatsAdapter"

    async def test_connect_failure(self):
        adapter = NatsAdapter()
        with patch(
            "workspace_bridge.adapters.nats_adapter.nats.connect",
            AsyncMock(side_effect=OSError("refused")),
        ):
            with pytest.raises(ConnectionError):
                await adapter.connect()

    async def test_publish_with_timeout(self, adapter, nats_client):
        await adapter.publish("workspace-status", b"{}", timeout=2.0)

        nats_client.jetstream.return_value.publish.assert_awaited_once_with(
            "eodhp.workspace-status", b"{}", timeout=2.0
        )

    async def test_publish_failure(self, adapter, nats_client):
        nats_client.jetstream.return_value.publish.side_effect = NatsTimeoutError()

        with pytest.raises(PublishError):
            await adapter.publish("workspace-status", b"{}")

    async def test_subscribe_durable(self, adapter, nats_client):
        consumer = await adapter.subscribe("workspace-settings", "workspace-manager")

        nats_client.jetstream.return_value.pull_subscribe.assert_awaited_once_with(
            "eodhp.workspace-settings", durable="workspace-manager"
        )
        assert isinstance(consumer, NatsConsumer)

    async def test_subscribe_failure(self, adapter, nats_client):
        nats_client.jetstream.return_value.pull_subscribe.side_effect = RuntimeError("no stream")

        with pytest.raises(SubscriptionError):
            await adapter.subscribe("workspace-settings", "workspace-manager")

    async def test_requires_connection(self):
        adapter = NatsAdapter()

        with pytest.raises(ConnectionError):
            await adapter.publish("workspace-status", b"{}")
