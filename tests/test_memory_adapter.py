"""
Tests for the in-memory queue adapter.
"""
import pytest

from workspace_bridge.adapters import MemoryAdapter, PublishError, ReceiveError

TOPIC = "workspace-settings"


class TestMemoryAdapter:
    """Tests for publish and subscribe."""

    async def test_connect_disconnect(self):
        adapter = MemoryAdapter()
        assert not adapter.is_connected

        await adapter.connect()
        assert adapter.is_connected
        assert adapter.name == "MemoryAdapter"

        await adapter.disconnect()
        assert not adapter.is_connected

    async def test_publish_requires_connection(self):
        adapter = MemoryAdapter()

        with pytest.raises(ConnectionError):
            await adapter.publish(TOPIC, b"{}")

    async def test_publish_rejects_non_bytes(self, queue):
        with pytest.raises(PublishError):
            await queue.publish(TOPIC, "text")

    async def test_publish_and_receive(self, queue):
        consumer = await queue.subscribe(TOPIC, "workspace-manager")

        await queue.publish(TOPIC, b'{"name": "geo-1"}')
        message = await consumer.receive(timeout=0.5)

        assert message.data == b'{"name": "geo-1"}'
        assert message.topic == TOPIC
        assert message.delivery_count == 1
        assert queue.published[TOPIC] == [b'{"name": "geo-1"}']

    async def test_receive_timeout(self, queue):
        consumer = await queue.subscribe(TOPIC, "workspace-manager")

        assert await consumer.receive(timeout=0.01) is None

    async def test_fifo_order(self, queue):
        consumer = await queue.subscribe(TOPIC, "workspace-manager")
        for i in range(3):
            await queue.publish(TOPIC, str(i).encode())

        received = [(await consumer.receive(timeout=0.5)).data for _ in range(3)]

        assert received == [b"0", b"1", b"2"]

    async def test_closed_consumer_raises(self, queue):
        consumer = await queue.subscribe(TOPIC, "workspace-manager")
        await queue.publish(TOPIC, b"x")

        await consumer.close()

        assert consumer.closed
        with pytest.raises(ReceiveError):
            await consumer.receive(timeout=0.01)
        assert queue.pending(TOPIC) == 1


class TestSettlement:
    """Tests for ack, redelivery and dead-lettering."""

    async def test_ack_removes_message(self, queue):
        consumer = await queue.subscribe(TOPIC, "workspace-manager")
        await queue.publish(TOPIC, b"x")

        message = await consumer.receive(timeout=0.5)
        await consumer.ack(message)

        assert consumer.acked == [message]
        assert queue.pending(TOPIC) == 0

    async def test_nack_redelivers(self, queue):
        consumer = await queue.subscribe(TOPIC, "workspace-manager")
        await queue.publish(TOPIC, b"x")

        first = await consumer.receive(timeout=0.5)
        await consumer.nack(first)
        second = await consumer.receive(timeout=0.5)

        assert second.data == b"x"
        assert second.delivery_count == 2

    async def test_dead_letter_after_max_deliver(self):
        adapter = MemoryAdapter(max_deliver=2)
        await adapter.connect()
        consumer = await adapter.subscribe(TOPIC, "workspace-manager")
        await adapter.publish(TOPIC, b"x")

        for _ in range(2):
            await consumer.nack(await consumer.receive(timeout=0.5))

        assert len(adapter.dead_letters) == 1
        assert adapter.pending(TOPIC) == 0
        await adapter.disconnect()

    async def test_nack_without_redelivery(self, queue):
        consumer = await queue.subscribe(TOPIC, "workspace-manager")
        await queue.publish(TOPIC, b"garbage")

        message = await consumer.receive(timeout=0.5)
        await consumer.nack(message, redeliver=False)

        assert consumer.terminated == [message]
        assert consumer.nacked == []
        assert queue.pending(TOPIC) == 0
        assert queue.dead_letters == []
