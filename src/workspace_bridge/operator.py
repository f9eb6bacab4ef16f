"""
Applies workspace settings to the resource store.

Every transition reads before it writes, so redelivered messages converge
on the same stored state instead of failing:
- creating: an existing object is left alone
- updating: the object's current resource version is carried into the write
- deleting: a missing object is already the desired state
"""
import logging
from typing import Optional

from .models import SettingsStatus, WorkspaceSettings
from .spec_builder import SpecBuilder
from .store import AlreadyExistsError, NotFoundError, ResourceStore


class ResourceOperator:
    """Dispatches settings messages to create/update/delete on the store."""

    def __init__(
        self,
        store: ResourceStore,
        builder: SpecBuilder,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.builder = builder
        self.logger = logger or logging.getLogger(__name__)

    async def process_message(self, settings: WorkspaceSettings) -> None:
        """
        Apply one settings message.

        Unknown statuses are logged and ignored: retrying them can never
        succeed, so the caller should treat the message as consumed.

        Raises:
            NotFoundError: When updating a workspace that does not exist
            ConflictError: When the workspace changed between read and update
            StoreError: On any other store failure
        """
        if settings.status == SettingsStatus.CREATING.value:
            await self.create_workspace(settings)
        elif settings.status == SettingsStatus.UPDATING.value:
            await self.update_workspace(settings)
        elif settings.status == SettingsStatus.DELETING.value:
            await self.delete_workspace(settings)
        else:
            self.logger.error(
                f"Unknown status '{settings.status}' for workspace {settings.name}; discarding message"
            )

    async def create_workspace(self, settings: WorkspaceSettings) -> None:
        workspace = self.builder.build_workspace(settings)

        if await self.store.get(settings.name) is not None:
            self.logger.info(f"Workspace {settings.name} already exists; skipping create")
            return

        try:
            await self.store.create(workspace)
        except AlreadyExistsError:
            self.logger.info(f"Workspace {settings.name} was created concurrently; skipping create")
            return

        self.logger.info(
            f"Workspace {settings.name} created (namespace {workspace.spec.namespace}, "
            f"member group {settings.member_group})"
        )

    async def update_workspace(self, settings: WorkspaceSettings) -> None:
        existing = await self.store.get(settings.name)
        if existing is None:
            raise NotFoundError(f"Cannot update workspace {settings.name}: not found")

        workspace = self.builder.build_workspace(settings)
        workspace.resource_version = existing.resource_version

        await self.store.update(workspace)
        self.logger.info(
            f"Workspace {settings.name} updated (rv {existing.resource_version}, "
            f"member group {settings.member_group})"
        )

    async def delete_workspace(self, settings: WorkspaceSettings) -> None:
        self.logger.info(f"Deleting workspace {settings.name}")

        if await self.store.get(settings.name) is None:
            self.logger.info(f"Workspace {settings.name} does not exist; nothing to delete")
            return

        try:
            await self.store.delete(settings.name)
        except NotFoundError:
            self.logger.info(f"Workspace {settings.name} was deleted concurrently")
            return

        self.logger.info(f"Workspace {settings.name} deleted")
