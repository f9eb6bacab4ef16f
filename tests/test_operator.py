"""
Tests for the ResourceOperator create/update/delete dispatch.
"""
import logging
from unittest.mock import AsyncMock

import pytest

from workspace_bridge.models import WorkspaceSettings, WorkspaceStatus
from workspace_bridge.operator import ResourceOperator
from workspace_bridge.store import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreError,
)


def make_settings(settings_payload, **kwargs) -> WorkspaceSettings:
    return WorkspaceSettings.model_validate(settings_payload(**kwargs))


class TestCreate:
    """Tests for the creating status."""

    async def test_create_workspace(self, operator, store, settings_payload):
        await operator.process_message(make_settings(settings_payload))

        stored = store.objects["geo-1"]
        assert stored.namespace == "workspaces"
        assert stored.spec.namespace == "ws-geo-1"
        assert len(stored.spec.aws.s3.buckets) == 1
        assert stored.spec.aws.efs.access_points[0].name == "scratch"
        assert stored.spec.storage.persistent_volumes[0].name == "pv-scratch"
        assert store.calls == ["get", "create"]

    async def test_create_twice_is_idempotent(self, operator, store, settings_payload):
        """Redelivered creates leave exactly one object and issue no second write."""
        settings = make_settings(settings_payload)

        await operator.process_message(settings)
        await operator.process_message(settings)

        assert list(store.objects) == ["geo-1"]
        assert store.calls == ["get", "create", "get"]

    async def test_create_race_is_success(self, store, builder, settings_payload):
        """A create that loses a race with another writer is treated as done."""
        store.create = AsyncMock(side_effect=AlreadyExistsError("exists"))
        operator = ResourceOperator(store, builder)

        await operator.process_message(make_settings(settings_payload))

        store.create.assert_awaited_once()

    async def test_create_failure_propagates(self, store, builder, settings_payload):
        store.create = AsyncMock(side_effect=StoreError("api unavailable"))
        operator = ResourceOperator(store, builder)

        with pytest.raises(StoreError):
            await operator.process_message(make_settings(settings_payload))


class TestUpdate:
    """Tests for the updating status."""

    async def test_update_carries_resource_version(self, operator, store, builder, settings_payload):
        await operator.process_message(make_settings(settings_payload))
        token = store.objects["geo-1"].resource_version

        update = AsyncMock(wraps=store.update)
        store.update = update
        updated = settings_payload(
            status="updating",
            stores=[{"object": [], "block": [{"name": "home"}]}],
        )
        await operator.process_message(WorkspaceSettings.model_validate(updated))

        submitted = update.await_args.args[0]
        assert submitted.resource_version == token
        stored = store.objects["geo-1"]
        assert stored.resource_version != token
        assert stored.spec.aws.s3.buckets == []
        assert [ap.name for ap in stored.spec.aws.efs.access_points] == ["home"]

    async def test_update_preserves_status(self, operator, store, settings_payload):
        """Spec updates never touch the controller-owned status."""
        await operator.process_message(make_settings(settings_payload))
        await store.set_status("geo-1", WorkspaceStatus(state="Ready"))

        await operator.process_message(make_settings(settings_payload, status="updating"))

        assert store.objects["geo-1"].status.state == "Ready"

    async def test_update_missing_workspace_fails(self, operator, store, settings_payload):
        with pytest.raises(NotFoundError):
            await operator.process_message(make_settings(settings_payload, status="updating"))

        assert store.calls == ["get"]

    async def test_update_conflict_surfaces(self, operator, store, settings_payload):
        await operator.process_message(make_settings(settings_payload))
        store.update = AsyncMock(side_effect=ConflictError("stale"))

        with pytest.raises(ConflictError):
            await operator.process_message(make_settings(settings_payload, status="updating"))


class TestDelete:
    """Tests for the deleting status."""

    async def test_delete_workspace(self, operator, store, settings_payload):
        await operator.process_message(make_settings(settings_payload))

        await operator.process_message(make_settings(settings_payload, status="deleting"))

        assert store.objects == {}
        assert store.calls[-2:] == ["get", "delete"]

    async def test_delete_missing_workspace_is_success(self, operator, store):
        settings = WorkspaceSettings(name="geo-1", status="deleting")

        await operator.process_message(settings)

        assert store.calls == ["get"]

    async def test_delete_race_is_success(self, operator, store, settings_payload):
        await operator.process_message(make_settings(settings_payload))
        store.delete = AsyncMock(side_effect=NotFoundError("gone"))

        await operator.process_message(make_settings(settings_payload, status="deleting"))

        store.delete.assert_awaited_once_with("geo-1")


class TestUnknownStatus:
    """Tests for unprocessable statuses."""

    async def test_unknown_status_is_logged_and_ignored(self, operator, store, settings_payload, caplog):
        with caplog.at_level(logging.ERROR):
            await operator.process_message(make_settings(settings_payload, status="archiving"))

        assert store.calls == []
        assert store.objects == {}
        assert "Unknown status 'archiving'" in caplog.text

    async def test_injected_logger(self, store, builder, settings_payload, caplog):
        custom = logging.getLogger("tests.operator")
        operator = ResourceOperator(store, builder, logger=custom)

        with caplog.at_level(logging.ERROR, logger="tests.operator"):
            await operator.process_message(make_settings(settings_payload, status="bogus"))

        assert any(record.name == "tests.operator" for record in caplog.records)
