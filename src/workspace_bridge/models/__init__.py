"""
Workspace Bridge models: inbound settings, Workspace resources and status envelopes.
"""
from .base import BaseDTO
from .settings import (
    BlockStore,
    ObjectStore,
    SettingsStatus,
    Stores,
    WorkspaceSettings,
)
from .workspace import (
    AuthorizationSpec,
    AWSSpec,
    EFSAccessPoint,
    EFSSpec,
    PVCSpec,
    PVSpec,
    S3Bucket,
    S3Spec,
    ServiceAccountSpec,
    StatusEnvelope,
    StorageSpec,
    User,
    VolumeSource,
    Workspace,
    WorkspaceSpec,
    WorkspaceStatus,
)

__all__ = [
    "BaseDTO",
    # Settings
    "BlockStore",
    "ObjectStore",
    "SettingsStatus",
    "Stores",
    "WorkspaceSettings",
    # Workspace resource
    "AuthorizationSpec",
    "AWSSpec",
    "EFSAccessPoint",
    "EFSSpec",
    "PVCSpec",
    "PVSpec",
    "S3Bucket",
    "S3Spec",
    "ServiceAccountSpec",
    "StorageSpec",
    "User",
    "VolumeSource",
    "Workspace",
    "WorkspaceSpec",
    "WorkspaceStatus",
    # Status notifications
    "StatusEnvelope",
]
