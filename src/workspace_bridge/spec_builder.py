"""
Mapping from workspace settings to the Workspace resource specification.

Everything here is pure: the same settings always produce the same spec, so
the builder can be shared freely between tasks.
"""
from typing import List

from .config import Settings
from .models import (
    AuthorizationSpec,
    AWSSpec,
    BlockStore,
    EFSAccessPoint,
    EFSSpec,
    ObjectStore,
    PVCSpec,
    PVSpec,
    S3Bucket,
    S3Spec,
    ServiceAccountSpec,
    StorageSpec,
    User,
    VolumeSource,
    Workspace,
    WorkspaceSettings,
    WorkspaceSpec,
)

NAMESPACE_PREFIX = "ws-"
WORKSPACES_ROOT = "/workspaces"
DEFAULT_UID = 1000
DEFAULT_GID = 1000
DEFAULT_PERMISSIONS = "0755"
DEFAULT_S3_ENV_VAR = "S3_BUCKET_WORKSPACE"
DEFAULT_SERVICE_ACCOUNT = "default"
WORKSPACE_LABELS = {"app.kubernetes.io/name": "workspace-operator"}


class SpecBuilder:
    """
    Builds Workspace specs from settings messages.

    Cluster-wide values (cluster id, EFS filesystem, storage class) come from
    static configuration; everything else is derived from the settings.
    """

    def __init__(
        self,
        cluster: str,
        fs_id: str = "",
        storage_class: str = "file-storage",
        storage_size: str = "10Gi",
        storage_driver: str = "efs.csi.aws.com",
        namespace: str = "workspaces",
    ):
        self.cluster = cluster
        self.fs_id = fs_id
        self.storage_class = storage_class
        self.storage_size = storage_size
        self.storage_driver = storage_driver
        self.namespace = namespace

    @classmethod
    def from_settings(cls, settings: Settings) -> "SpecBuilder":
        return cls(
            cluster=settings.aws_cluster,
            fs_id=settings.aws_fs_id,
            storage_class=settings.storage_class,
            storage_size=settings.storage_size,
            storage_driver=settings.storage_driver,
            namespace=settings.workspace_namespace,
        )

    def build(self, settings: WorkspaceSettings) -> WorkspaceSpec:
        """Derive the full Workspace spec for a settings message."""
        access_points = self.efs_access_points(settings.name, settings.block_stores)

        return WorkspaceSpec(
            namespace=NAMESPACE_PREFIX + settings.name,
            account=str(settings.account) if settings.account else "",
            authorization=AuthorizationSpec(member_group=settings.member_group),
            aws=AWSSpec(
                role_name=f"{self.cluster}-{settings.name}",
                efs=EFSSpec(access_points=access_points),
                s3=S3Spec(buckets=self.s3_buckets(settings.name, settings.object_stores)),
            ),
            service_account=ServiceAccountSpec(name=DEFAULT_SERVICE_ACCOUNT),
            storage=self.storage(access_points),
        )

    def build_workspace(self, settings: WorkspaceSettings) -> Workspace:
        """Wrap the derived spec in a Workspace object ready for the store."""
        return Workspace(
            name=settings.name,
            namespace=self.namespace,
            labels=dict(WORKSPACE_LABELS),
            spec=self.build(settings),
        )

    def s3_buckets(self, workspace_name: str, object_stores: List[ObjectStore]) -> List[S3Bucket]:
        """One bucket descriptor per object store, sharing the workspace access point."""
        return [
            S3Bucket(
                name=store.bucket or store.name,
                path=f"{workspace_name}/",
                env_var=store.env_var or DEFAULT_S3_ENV_VAR,
                access_point_name=f"{self.cluster}-{workspace_name}-s3",
            )
            for store in object_stores
        ]

    def efs_access_points(
        self, workspace_name: str, block_stores: List[BlockStore]
    ) -> List[EFSAccessPoint]:
        """One access point per block store, rooted at the workspace directory."""
        return [
            EFSAccessPoint(
                name=store.name,
                fs_id=self.fs_id,
                root_directory=f"{WORKSPACES_ROOT}/{workspace_name}",
                user=User(uid=DEFAULT_UID, gid=DEFAULT_GID),
                permissions=DEFAULT_PERMISSIONS,
            )
            for store in block_stores
        ]

    def storage(self, access_points: List[EFSAccessPoint]) -> StorageSpec:
        """Pair every access point with one persistent volume and one claim."""
        volumes = []
        claims = []
        for access_point in access_points:
            pv_name = f"pv-{access_point.name}"
            volumes.append(
                PVSpec(
                    name=pv_name,
                    storage_class=self.storage_class,
                    size=self.storage_size,
                    volume_source=VolumeSource(
                        driver=self.storage_driver,
                        access_point_name=access_point.name,
                    ),
                )
            )
            claims.append(
                PVCSpec(
                    name=f"pvc-{access_point.name}",
                    storage_class=self.storage_class,
                    size=self.storage_size,
                    pv_name=pv_name,
                )
            )
        return StorageSpec(persistent_volumes=volumes, persistent_volume_claims=claims)
