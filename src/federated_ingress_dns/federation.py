"""Federation API objects and client.

The controller reads federated ingresses (list and watch) and the zone/region
metadata of member clusters. It never writes to the federation API.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException

from federated_ingress_dns.errors import TopologyLookupError

logger = logging.getLogger(__name__)

CLUSTER_GROUP = "federation"
CLUSTER_VERSION = "v1beta1"
CLUSTER_PLURAL = "clusters"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class LoadBalancerIngress:
    """One load balancer address; either field may be empty."""

    ip: str = ""
    hostname: str = ""

    @property
    def address(self) -> str:
        return self.ip or self.hostname


@dataclass
class FederatedIngress:
    """The slice of a federated ingress the DNS controller looks at."""

    namespace: str
    name: str
    annotations: Dict[str, str] = field(default_factory=dict)
    deletion_timestamp: Optional[str] = None
    load_balancer: List[LoadBalancerIngress] = field(default_factory=list)
    # Set for the final state delivered by a DELETED watch event.
    tombstone: bool = False

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def deleted(self) -> bool:
        return self.tombstone or self.deletion_timestamp is not None

    def as_deleted(self) -> FederatedIngress:
        """Copy of this ingress that reads as deleted."""
        if self.deleted:
            return self
        return replace(self, tombstone=True)


@dataclass(frozen=True)
class ClusterTopology:
    zones: Tuple[str, ...]
    region: str


class WatchEventType(Enum):
    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    type: WatchEventType
    ingress: FederatedIngress


# =============================================================================
# Client Interface and Implementations
# =============================================================================


class FederationClient(ABC):
    """Read access to the federation control plane."""

    @abstractmethod
    def list_ingresses(self) -> List[FederatedIngress]:
        pass

    @abstractmethod
    def watch_ingresses(self, timeout_seconds: Optional[int] = None) -> Iterator[WatchEvent]:
        """Stream ingress changes until the stream ends or stop() is called."""
        pass

    @abstractmethod
    def get_cluster_topology(self, cluster_name: str) -> ClusterTopology:
        """Raises TopologyLookupError if the cluster cannot be read."""
        pass

    def stop(self) -> None:
        """Interrupt an open watch stream."""
        pass


def _get(obj: Any, key: str) -> Any:
    # kubernetes models expose attributes, raw watch payloads are dicts
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def ingress_from_object(obj: Any) -> FederatedIngress:
    """Convert a kubernetes V1Ingress (or its dict form) to a FederatedIngress."""
    metadata = _get(obj, "metadata")
    load_balancer = _get(_get(obj, "status"), "load_balancer") or _get(
        _get(obj, "status"), "loadBalancer"
    )
    addresses = [
        LoadBalancerIngress(ip=_get(lb, "ip") or "", hostname=_get(lb, "hostname") or "")
        for lb in (_get(load_balancer, "ingress") or [])
    ]
    deletion_timestamp = _get(metadata, "deletion_timestamp") or _get(
        metadata, "deletionTimestamp"
    )
    return FederatedIngress(
        namespace=_get(metadata, "namespace") or "",
        name=_get(metadata, "name") or "",
        annotations=dict(_get(metadata, "annotations") or {}),
        deletion_timestamp=str(deletion_timestamp) if deletion_timestamp else None,
        load_balancer=addresses,
    )


class KubernetesFederationClient(FederationClient):
    """FederationClient backed by the federation API server."""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self._networking = client.NetworkingV1Api(api_client)
        self._custom = client.CustomObjectsApi(api_client)
        self._resource_version: Optional[str] = None
        self._active_watcher: Optional[watch.Watch] = None
        self._watcher_lock = threading.Lock()

    @classmethod
    def from_kubeconfig(cls, kubeconfig: str = "") -> "KubernetesFederationClient":
        if kubeconfig:
            config.load_kube_config(config_file=kubeconfig)
        else:
            config.load_incluster_config()
        return cls(client.ApiClient())

    def list_ingresses(self) -> List[FederatedIngress]:
        response = self._networking.list_ingress_for_all_namespaces()
        self._resource_version = _get(_get(response, "metadata"), "resource_version")
        return [ingress_from_object(item) for item in (response.items or [])]

    def watch_ingresses(self, timeout_seconds: Optional[int] = None) -> Iterator[WatchEvent]:
        watcher = watch.Watch()
        with self._watcher_lock:
            self._active_watcher = watcher
        kwargs: Dict[str, Any] = {}
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version
        if timeout_seconds:
            kwargs["timeout_seconds"] = timeout_seconds
        try:
            for event in watcher.stream(self._networking.list_ingress_for_all_namespaces, **kwargs):
                try:
                    event_type = WatchEventType(event.get("type"))
                except ValueError:
                    logger.debug(f"Ignoring watch event of type {event.get('type')}")
                    continue
                ingress = ingress_from_object(event.get("object"))
                yield WatchEvent(type=event_type, ingress=ingress)
            self._resource_version = watcher.resource_version
        finally:
            with self._watcher_lock:
                if self._active_watcher is watcher:
                    self._active_watcher = None

    def stop(self) -> None:
        with self._watcher_lock:
            watcher = self._active_watcher
        if watcher is not None:
            watcher.stop()

    def get_cluster_topology(self, cluster_name: str) -> ClusterTopology:
        try:
            cluster = self._custom.get_cluster_custom_object(
                CLUSTER_GROUP, CLUSTER_VERSION, CLUSTER_PLURAL, cluster_name
            )
        except ApiException as e:
            raise TopologyLookupError(
                f"Failed to get cluster {cluster_name}: {e.status} {e.reason}"
            ) from e
        status = (cluster or {}).get("status") or {}
        return ClusterTopology(
            zones=tuple(status.get("zones") or ()),
            region=str(status.get("region") or ""),
        )
