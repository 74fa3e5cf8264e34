"""Healthy endpoint aggregation.

The companion ingress controller records the load balancer status of every
member cluster in one annotation on the federated ingress. From it we derive,
for a given cluster, the endpoints in the same zone, the same region, and
anywhere in the federation.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

from federated_ingress_dns.errors import AnnotationParseError, EndpointDataError
from federated_ingress_dns.federation import (
    FederatedIngress,
    FederationClient,
    LoadBalancerIngress,
)

logger = logging.getLogger(__name__)

GLOBAL_INGRESS_LB_STATUS = "kubernetes.io/ingress.global-ingress-lb-status"

# Map of cluster name to that cluster's load balancer statuses.
GlobalLBStatus = Dict[str, List["LoadBalancerStatus"]]


@dataclass(frozen=True)
class LoadBalancerStatus:
    ingress: Tuple[LoadBalancerIngress, ...] = ()


@dataclass(frozen=True)
class HealthyEndpoints:
    """Endpoint addresses at each level of the DNS hierarchy."""

    zone: FrozenSet[str] = frozenset()
    region: FrozenSet[str] = frozenset()
    global_: FrozenSet[str] = frozenset()

    def by_level(self) -> Tuple[FrozenSet[str], FrozenSet[str], FrozenSet[str]]:
        """Return (zone, region, global), leaf first."""
        return self.zone, self.region, self.global_


def _parse_lb_status(cluster_name: str, raw: Any) -> LoadBalancerStatus:
    if not isinstance(raw, dict):
        raise AnnotationParseError(
            f"Load balancer status for cluster {cluster_name} must be an object, got {raw!r}"
        )
    # Kubernetes serializes LoadBalancerStatus as {"ingress": [...]}
    entries = raw.get("ingress")
    if entries is None:
        entries = raw.get("addresses")
    if entries is None:
        entries = []
    if not isinstance(entries, list):
        raise AnnotationParseError(
            f"Load balancer addresses for cluster {cluster_name} must be a list, got {entries!r}"
        )
    addresses = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise AnnotationParseError(
                f"Load balancer address for cluster {cluster_name} must be an object, got {entry!r}"
            )
        addresses.append(
            LoadBalancerIngress(
                ip=str(entry.get("ip") or ""), hostname=str(entry.get("hostname") or "")
            )
        )
    return LoadBalancerStatus(ingress=tuple(addresses))


def parse_global_lb_status(ingress: FederatedIngress) -> Optional[GlobalLBStatus]:
    """Parse the global load balancer status annotation.

    Returns None when the annotation is absent. Raises AnnotationParseError
    when it is present but malformed.
    """
    raw = (ingress.annotations or {}).get(GLOBAL_INGRESS_LB_STATUS)
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise AnnotationParseError(
            f"Invalid {GLOBAL_INGRESS_LB_STATUS} annotation on {ingress.key}: {e}"
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise AnnotationParseError(
            f"{GLOBAL_INGRESS_LB_STATUS} annotation on {ingress.key} must be an object"
        )

    statuses: GlobalLBStatus = {}
    for cluster_name, raw_statuses in data.items():
        if raw_statuses is None:
            statuses[cluster_name] = []
            continue
        if not isinstance(raw_statuses, list):
            raise AnnotationParseError(
                f"Statuses for cluster {cluster_name} on {ingress.key} must be a list"
            )
        statuses[cluster_name] = [_parse_lb_status(cluster_name, s) for s in raw_statuses]
    return statuses


def get_healthy_endpoints(
    cluster_name: str, ingress: FederatedIngress, federation_client: FederationClient
) -> HealthyEndpoints:
    """Return the endpoints of ``ingress`` as seen from ``cluster_name``.

    A deleted ingress yields no endpoints at any level, so that its records
    get torn down.
    """
    topology = federation_client.get_cluster_topology(cluster_name)

    if ingress.deleted:
        return HealthyEndpoints()

    lb_statuses = parse_global_lb_status(ingress)
    if not lb_statuses:
        return HealthyEndpoints()

    zone_endpoints: Set[str] = set()
    region_endpoints: Set[str] = set()
    global_endpoints: Set[str] = set()

    for lb_cluster_name, statuses in lb_statuses.items():
        lb_topology = federation_client.get_cluster_topology(lb_cluster_name)
        same_zone = any(z in topology.zones for z in lb_topology.zones)
        same_region = lb_topology.region == topology.region
        for status in statuses:
            for lb_ingress in status.ingress:
                address = lb_ingress.address
                if not address:
                    raise EndpointDataError(
                        f"Ingress {ingress.key} in cluster {lb_cluster_name} has neither "
                        "an ip nor a hostname in its load balancer status, "
                        "cannot use it as an endpoint"
                    )
                if same_zone:
                    zone_endpoints.add(address)
                if same_region:
                    region_endpoints.add(address)
                global_endpoints.add(address)

    return HealthyEndpoints(
        zone=frozenset(zone_endpoints),
        region=frozenset(region_endpoints),
        global_=frozenset(global_endpoints),
    )
