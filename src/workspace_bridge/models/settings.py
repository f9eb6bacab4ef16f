"""
Inbound workspace settings messages.

These are published by the upstream workspace configuration service on the
settings topic, one message per workspace state transition.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from .base import BaseDTO


class SettingsStatus(str, Enum):
    """Workspace transitions the bridge knows how to apply."""
    CREATING = "creating"
    UPDATING = "updating"
    DELETING = "deleting"


class ObjectStore(BaseDTO):
    """An object storage (S3) entry attached to a workspace."""
    store_id: Optional[UUID] = Field(default=None, description="Store identifier")
    name: str = Field(..., description="Store name")
    bucket: Optional[str] = Field(default=None, description="Bucket holding the store")
    prefix: Optional[str] = Field(default=None, description="Key prefix within the bucket")
    host: Optional[str] = Field(default=None, description="Object store endpoint")
    env_var: Optional[str] = Field(default=None, description="Env var exposing the bucket to workloads")
    access_point_arn: Optional[str] = Field(default=None, description="S3 access point ARN")


class BlockStore(BaseDTO):
    """A block storage (EFS) entry attached to a workspace."""
    store_id: Optional[UUID] = Field(default=None, description="Store identifier")
    name: str = Field(..., description="Store name")
    access_point_id: Optional[str] = Field(default=None, description="EFS access point ID")
    mount_point: Optional[str] = Field(default=None, description="Mount path inside workloads")


class Stores(BaseDTO):
    """Object and block stores declared for a workspace."""
    object: List[ObjectStore] = Field(default_factory=list)
    block: List[BlockStore] = Field(default_factory=list)

    @field_validator("object", "block", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        # Upstream serializes empty store lists as null
        return [] if value is None else value


class WorkspaceSettings(BaseDTO):
    """Desired state of a single workspace."""
    id: Optional[UUID] = Field(default=None, description="Settings record ID")
    name: str = Field(..., min_length=1, description="Workspace name (unique key)")
    account: Optional[UUID] = Field(default=None, description="Owning account ID")
    member_group: str = Field(default="", description="Group granted access to the workspace")
    status: str = Field(..., description="Requested transition: creating, updating or deleting")
    stores: Optional[List[Stores]] = Field(default=None, description="Storage declarations")
    last_updated: Optional[datetime] = Field(default=None, description="Last change upstream")

    @field_validator("member_group", mode="before")
    @classmethod
    def null_member_group(cls, value):
        return "" if value is None else value

    @property
    def object_stores(self) -> List[ObjectStore]:
        """All object stores across every store group, in declaration order."""
        return [obj for group in self.stores or [] for obj in group.object]

    @property
    def block_stores(self) -> List[BlockStore]:
        """All block stores across every store group, in declaration order."""
        return [block for group in self.stores or [] for block in group.block]
