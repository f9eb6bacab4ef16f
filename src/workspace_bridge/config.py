"""
Configuration settings for the Workspace Bridge.
"""
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Workspace Bridge configuration loaded from environment variables.

    For local development, create a .env file. Defaults target a local NATS
    server and the in-cluster Workspace CRD layout.
    """
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service settings
    service_name: str = "workspace-bridge"
    service_port: int = 8080
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Adapter configuration
    queue_adapter: Literal["nats", "memory"] = "nats"
    store_adapter: Literal["kubernetes", "memory"] = "kubernetes"

    # NATS settings
    nats_url: str = "nats://localhost:4222"
    nats_reconnect_time_wait: int = 2  # seconds
    nats_max_reconnect_attempts: int = -1  # -1 = infinite
    nats_subject_prefix: str = ""

    # Topics
    settings_topic: str = "workspace-settings"
    settings_subscription: str = "workspace-manager"
    status_topic: str = "workspace-status"

    # Consumer loop
    receive_timeout: float = 1.0  # seconds per poll
    receive_error_backoff: float = 1.0  # seconds
    settings_buffer_size: int = 0  # 0 = process directly, no internal buffer

    # Status publishing
    publish_timeout: float = 5.0  # seconds

    # Workspace custom resource
    workspace_group: str = "core.telespazio-uk.io"
    workspace_version: str = "v1alpha1"
    workspace_plural: str = "workspaces"
    workspace_kind: str = "Workspace"
    workspace_namespace: str = "workspaces"
    kube_request_timeout: float = 10.0  # seconds

    # AWS
    aws_cluster: str = "eodhp-dev"
    aws_fs_id: str = ""

    # Storage
    storage_class: str = "file-storage"
    storage_size: str = "10Gi"
    storage_driver: str = "efs.csi.aws.com"


# Global settings instance
settings = Settings()
