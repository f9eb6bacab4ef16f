"""
Kubernetes resource store for the Workspace Bridge.

This store talks to the Workspace custom resource through the
CustomObjectsApi of kubernetes_asyncio. Change notifications are built
informer-style: list once, then watch from the list's resource version while
keeping the last seen object per name so each MODIFIED event can be turned
into an `(old, new)` pair.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Set

from kubernetes_asyncio import client, config, watch
from kubernetes_asyncio.client.exceptions import ApiException
from pydantic import ValidationError

from ..models import Workspace, WorkspaceSpec, WorkspaceStatus
from .base import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ResourceStore,
    StoreError,
    Subscription,
)

logger = logging.getLogger(__name__)


def to_manifest(workspace: Workspace, api_version: str, kind: str) -> Dict[str, Any]:
    """Render a Workspace as a custom object body. Status is never sent."""
    metadata: Dict[str, Any] = {
        "name": workspace.name,
        "namespace": workspace.namespace,
        "labels": dict(workspace.labels),
    }
    if workspace.resource_version:
        metadata["resourceVersion"] = workspace.resource_version

    return {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": metadata,
        "spec": workspace.spec.model_dump(mode="json", by_alias=True, exclude_none=True),
    }


def from_manifest(body: Dict[str, Any]) -> Workspace:
    """Parse a custom object body returned by the API server."""
    metadata = body.get("metadata") or {}
    name = metadata.get("name", "")

    try:
        spec = WorkspaceSpec.model_validate(body.get("spec") or {})
    except ValidationError as e:
        # The controller may carry fields this bridge does not model
        logger.debug(f"Unparseable spec on workspace {name}: {e}")
        spec = WorkspaceSpec()

    status = body.get("status")
    return Workspace(
        name=name,
        namespace=metadata.get("namespace", ""),
        labels=metadata.get("labels") or {},
        resource_version=metadata.get("resourceVersion"),
        spec=spec,
        status=WorkspaceStatus.model_validate(status) if status is not None else None,
    )


class KubernetesStore(ResourceStore):
    """
    Workspace store backed by the Kubernetes API server.

    Features:
    - In-cluster configuration with kubeconfig fallback
    - HTTP 404/409 mapped onto NotFoundError/AlreadyExistsError/ConflictError
    - List+watch subscriptions with relist on expired resource versions
    """

    def __init__(
        self,
        group: str = "core.telespazio-uk.io",
        version: str = "v1alpha1",
        plural: str = "workspaces",
        kind: str = "Workspace",
        namespace: str = "workspaces",
        request_timeout: float = 10.0,
        watch_timeout: int = 300,
        retry_backoff: float = 2.0,
    ):
        """
        Initialize the Kubernetes store.

        Args:
            group: API group of the Workspace CRD
            version: API version of the Workspace CRD
            plural: Plural resource name
            kind: Resource kind
            namespace: Namespace Workspace objects are stored in
            request_timeout: Per-request timeout (seconds)
            watch_timeout: Server-side watch timeout before the watch is restarted (seconds)
            retry_backoff: Delay before re-establishing a failed watch (seconds)
        """
        self.group = group
        self.version = version
        self.plural = plural
        self.kind = kind
        self.namespace = namespace
        self._request_timeout = request_timeout
        self._watch_timeout = watch_timeout
        self._retry_backoff = retry_backoff
        self._api_client: client.ApiClient | None = None
        self._api: client.CustomObjectsApi | None = None
        self._watch_tasks: Set[asyncio.Task] = set()

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"

    async def connect(self) -> None:
        """Load cluster credentials and create the API client."""
        if self._api is not None:
            logger.warning("Already connected to Kubernetes")
            return

        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
        except config.ConfigException:
            try:
                await config.load_kube_config()
                logger.info("Loaded kubeconfig")
            except Exception as e:
                logger.error(f"Failed to load Kubernetes configuration: {e}")
                raise ConnectionError(f"Failed to load Kubernetes configuration: {e}") from e

        self._api_client = client.ApiClient()
        self._api = client.CustomObjectsApi(self._api_client)
        logger.info(f"Kubernetes store ready for {self.plural}.{self.api_version} in {self.namespace}")

    async def disconnect(self) -> None:
        """Stop watches and close the API client."""
        if self._api_client is None:
            return

        for task in list(self._watch_tasks):
            task.cancel()
        if self._watch_tasks:
            await asyncio.gather(*self._watch_tasks, return_exceptions=True)
        self._watch_tasks.clear()

        try:
            await self._api_client.close()
        except Exception as e:
            logger.warning(f"Error closing Kubernetes client: {e}")

        self._api_client = None
        self._api = None
        logger.info("Disconnected from Kubernetes")

    async def get(self, name: str) -> Optional[Workspace]:
        api = self._require_api()
        try:
            body = await api.get_namespaced_custom_object(
                self.group, self.version, self.namespace, self.plural, name,
                _request_timeout=self._request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise StoreError(f"Failed to fetch workspace {name}: {e.reason}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"Timed out fetching workspace {name}") from e
        return from_manifest(body)

    async def create(self, workspace: Workspace) -> None:
        api = self._require_api()
        try:
            await api.create_namespaced_custom_object(
                self.group, self.version, self.namespace, self.plural,
                to_manifest(workspace, self.api_version, self.kind),
                _request_timeout=self._request_timeout,
            )
        except ApiException as e:
            if e.status == 409:
                raise AlreadyExistsError(f"Workspace {workspace.name} already exists") from e
            raise StoreError(f"Failed to create workspace {workspace.name}: {e.reason}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"Timed out creating workspace {workspace.name}") from e

    async def update(self, workspace: Workspace) -> None:
        api = self._require_api()
        try:
            await api.replace_namespaced_custom_object(
                self.group, self.version, self.namespace, self.plural, workspace.name,
                to_manifest(workspace, self.api_version, self.kind),
                _request_timeout=self._request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Workspace {workspace.name} not found") from e
            if e.status == 409:
                raise ConflictError(
                    f"Workspace {workspace.name} was modified concurrently "
                    f"(rv {workspace.resource_version})"
                ) from e
            raise StoreError(f"Failed to update workspace {workspace.name}: {e.reason}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"Timed out updating workspace {workspace.name}") from e

    async def delete(self, name: str) -> None:
        api = self._require_api()
        try:
            await api.delete_namespaced_custom_object(
                self.group, self.version, self.namespace, self.plural, name,
                _request_timeout=self._request_timeout,
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"Workspace {name} not found") from e
            raise StoreError(f"Failed to delete workspace {name}: {e.reason}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"Timed out deleting workspace {name}") from e

    async def subscribe(self, maxsize: int = 100) -> Subscription:
        self._require_api()
        task: asyncio.Task

        def stop_watch() -> None:
            task.cancel()

        subscription = Subscription(maxsize=maxsize, on_cancel=stop_watch)
        task = asyncio.create_task(self._watch(subscription))
        self._watch_tasks.add(task)
        task.add_done_callback(self._watch_tasks.discard)
        logger.info(f"Watching {self.plural}.{self.api_version} in {self.namespace}")
        return subscription

    @property
    def is_connected(self) -> bool:
        """Check if the API client is ready."""
        return self._api is not None

    def _require_api(self) -> client.CustomObjectsApi:
        if self._api is None:
            raise ConnectionError("Not connected to Kubernetes")
        return self._api

    async def _relist(self, cache: Dict[str, Workspace], subscription: Subscription) -> str:
        """
        Replace the cache with a fresh listing.

        Objects that changed while no watch was running are delivered as
        pairs so no status transition is missed.
        """
        api = self._require_api()
        listing = await api.list_namespaced_custom_object(
            self.group, self.version, self.namespace, self.plural,
            _request_timeout=self._request_timeout,
        )

        fresh = {}
        for item in listing.get("items", []):
            workspace = from_manifest(item)
            fresh[workspace.name] = workspace

        for name, workspace in fresh.items():
            previous = cache.get(name)
            if previous is not None and previous.resource_version != workspace.resource_version:
                await subscription.deliver(previous, workspace)

        cache.clear()
        cache.update(fresh)
        return (listing.get("metadata") or {}).get("resourceVersion", "")

    async def _watch(self, subscription: Subscription) -> None:
        """Feed a subscription from a list+watch loop until it is cancelled."""
        api = self._require_api()
        cache: Dict[str, Workspace] = {}
        resource_version: str | None = None

        while not subscription.cancelled:
            try:
                if resource_version is None:
                    resource_version = await self._relist(cache, subscription)

                stream = watch.Watch().stream(
                    api.list_namespaced_custom_object,
                    self.group, self.version, self.namespace, self.plural,
                    resource_version=resource_version,
                    timeout_seconds=self._watch_timeout,
                )
                async with stream:
                    async for event in stream:
                        if subscription.cancelled:
                            break

                        event_type = event.get("type")
                        body = event.get("object") or {}

                        if event_type == "ERROR":
                            if body.get("code") == 410:
                                logger.info("Workspace watch expired; relisting")
                                resource_version = None
                                break
                            raise StoreError(f"Watch error: {body.get('message')}")

                        workspace = from_manifest(body)
                        resource_version = workspace.resource_version or resource_version

                        if event_type == "DELETED":
                            cache.pop(workspace.name, None)
                            continue

                        previous = cache.get(workspace.name)
                        cache[workspace.name] = workspace
                        if event_type == "MODIFIED" and previous is not None:
                            await subscription.deliver(previous, workspace)

            except asyncio.CancelledError:
                logger.info("Workspace watch cancelled")
                raise
            except ApiException as e:
                if e.status == 410:
                    logger.info("Workspace watch expired; relisting")
                    resource_version = None
                    continue
                logger.error(f"Workspace watch failed: {e.reason}")
                await asyncio.sleep(self._retry_backoff)
            except Exception as e:
                logger.error(f"Workspace watch failed: {e}", exc_info=True)
                resource_version = None
                await asyncio.sleep(self._retry_backoff)
