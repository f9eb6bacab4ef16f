"""
Workspace custom resource models.

The spec models mirror the Workspace CRD served by the workspace controller
(camelCase on the wire). The bridge writes `spec`; `status` belongs to the
controller and is only ever read here.
"""
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from .base import BaseDTO


# =============================================================================
# Spec
# =============================================================================


class S3Bucket(BaseDTO):
    """S3 bucket access granted to the workspace."""
    name: str
    path: str
    env_var: str
    access_point_name: str


class User(BaseDTO):
    """POSIX identity applied to an EFS access point."""
    uid: int
    gid: int


class EFSAccessPoint(BaseDTO):
    """EFS access point rooted at the workspace directory."""
    name: str
    fs_id: str = Field(default="", alias="fsID")
    root_directory: str
    user: User
    permissions: str


class VolumeSource(BaseDTO):
    """CSI volume source backing a persistent volume."""
    driver: str
    access_point_name: str


class PVSpec(BaseDTO):
    """Persistent volume declared in the workspace namespace."""
    name: str
    storage_class: str
    size: str
    volume_source: Optional[VolumeSource] = None


class PVCSpec(BaseDTO):
    """Persistent volume claim bound to a declared volume."""
    name: str
    storage_class: str
    size: str
    pv_name: str


class StorageSpec(BaseDTO):
    persistent_volumes: List[PVSpec] = Field(default_factory=list)
    persistent_volume_claims: List[PVCSpec] = Field(default_factory=list)


class EFSSpec(BaseDTO):
    access_points: List[EFSAccessPoint] = Field(default_factory=list)


class S3Spec(BaseDTO):
    buckets: List[S3Bucket] = Field(default_factory=list)


class AWSSpec(BaseDTO):
    role_name: str = ""
    efs: EFSSpec = Field(default_factory=EFSSpec)
    s3: S3Spec = Field(default_factory=S3Spec)


class AuthorizationSpec(BaseDTO):
    member_group: str = ""


class ServiceAccountSpec(BaseDTO):
    name: str = "default"


class WorkspaceSpec(BaseDTO):
    """Desired state of a Workspace, derived from its settings."""
    namespace: str = Field(default="", description="Namespace holding the workspace resources")
    account: str = Field(default="", description="Owning account ID")
    authorization: AuthorizationSpec = Field(default_factory=AuthorizationSpec)
    aws: AWSSpec = Field(default_factory=AWSSpec)
    service_account: ServiceAccountSpec = Field(default_factory=ServiceAccountSpec)
    storage: StorageSpec = Field(default_factory=StorageSpec)


# =============================================================================
# Status
# =============================================================================


class WorkspaceStatus(BaseDTO):
    """
    Observed state of a Workspace as reported by the controller.

    Fields the controller adds beyond the ones declared here are preserved
    so they take part in change detection and are forwarded downstream.
    """
    model_config = ConfigDict(extra="allow")

    state: Optional[str] = Field(default=None, description="Lifecycle state, e.g. Pending or Ready")
    namespace: Optional[str] = Field(default=None, description="Provisioned workspace namespace")
    aws: Optional[Dict[str, Any]] = Field(default=None, description="Provisioned AWS resources")
    error_description: Optional[str] = Field(default=None, description="Last reconciliation error")

    def as_payload(self) -> Dict[str, Any]:
        """JSON-shaped view of the status, omitting unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def differs_from(self, other: Optional["WorkspaceStatus"]) -> bool:
        """
        Structural comparison against a previous observation.

        Two statuses are equal when their JSON payloads are equal; a missing
        status compares equal to an empty one.
        """
        previous = other.as_payload() if other is not None else {}
        return self.as_payload() != previous


# =============================================================================
# Resource object
# =============================================================================


class Workspace(BaseDTO):
    """A Workspace object as held by the resource store."""
    name: str = Field(..., description="Object name, equal to the settings name")
    namespace: str = Field(..., description="Namespace the object lives in")
    labels: Dict[str, str] = Field(default_factory=dict)
    resource_version: Optional[str] = Field(
        default=None,
        description="Concurrency token; required on update",
    )
    spec: WorkspaceSpec = Field(default_factory=WorkspaceSpec)
    status: Optional[WorkspaceStatus] = None


class StatusEnvelope(BaseDTO):
    """Outbound notification describing a Workspace status change."""
    workspace_name: str = Field(..., description="Workspace whose status changed")
    namespace: str = Field(..., description="Namespace of the Workspace object")
    status: WorkspaceStatus = Field(..., description="The new status")

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
