"""DNS record reconciliation for federated ingresses.

For every ingress we maintain the following names, shown for zone z1 in
region r1:

    mying.myns.myfed.ing.z1.r1.mydomain.com
        A records for the healthy shards in zone z1, or a CNAME to the
        region name when there are none.
    mying.myns.myfed.ing.r1.mydomain.com
        A records for the healthy shards in region r1, or a CNAME to the
        global name when there are none.
    mying.myns.myfed.ing.mydomain.com
        A records for all healthy shards, or no record at all.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Callable, Iterable, List, Optional, Sequence

import dns.exception
import dns.resolver

from federated_ingress_dns.dnsprovider import (
    MIN_DNS_TTL,
    RecordSet,
    RecordSets,
    RecordType,
    Zone,
    find_record_set,
)
from federated_ingress_dns.endpoints import get_healthy_endpoints
from federated_ingress_dns.errors import ResolutionError, TopologyLookupError, UnsupportedError
from federated_ingress_dns.federation import FederatedIngress, FederationClient

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Iterable[str]]


# =============================================================================
# Endpoint Resolution
# =============================================================================


def lookup_host(hostname: str) -> List[str]:
    """Resolve ``hostname`` to its IPv4 addresses."""
    try:
        answer = dns.resolver.resolve(hostname, "A")
    except dns.exception.DNSException as e:
        raise ResolutionError(f"Failed to resolve {hostname}: {e}") from e
    return [rdata.address for rdata in answer]


def _ip_version(value: str) -> Optional[int]:
    try:
        return ipaddress.ip_address(value).version
    except ValueError:
        return None


def resolve_endpoints(endpoints: Iterable[str], resolver: Resolver = lookup_host) -> List[str]:
    """Replace hostnames with their addresses; return sorted unique addresses.

    Some load balancers (AWS ELB for one) are published as DNS names rather
    than addresses, and A records need addresses.
    """
    resolved = set()
    for endpoint in endpoints:
        version = _ip_version(endpoint)
        if version == 4:
            resolved.add(endpoint)
            continue
        if version is not None:
            logger.warning(f"Skipping endpoint {endpoint}, only IPv4 addresses get A records")
            continue
        addresses = list(resolver(endpoint))
        logger.debug(f"Resolved {endpoint} to {addresses}")
        resolved.update(addresses)
    return sorted(resolved)


# =============================================================================
# Name Hierarchy
# =============================================================================


def build_dns_names(
    ingress_name: str,
    namespace: str,
    federation_name: str,
    suffix: str,
    zone_name: str,
    region: str,
    domain: str,
) -> List[str]:
    """Return [zone name, region name, global name, ""], leaf first.

    The trailing empty string means there is no level above global.
    """
    common_prefix = ".".join([ingress_name, namespace, federation_name, suffix])
    return [
        ".".join([common_prefix, zone_name, region, domain]),
        ".".join([common_prefix, region, domain]),
        ".".join([common_prefix, domain]),
        "",
    ]


# =============================================================================
# Record Set Convergence
# =============================================================================


def _record_sets_of(zone: Zone, dns_name: str) -> RecordSets:
    rrsets = zone.record_sets()
    if rrsets is None:
        raise UnsupportedError(
            f"Failed to ensure DNS records for {dns_name}. "
            "DNS provider does not support record sets"
        )
    return rrsets


def _replace(
    rrsets: RecordSets, existing: Sequence[RecordSet], wanted: Optional[RecordSet]
) -> None:
    changeset = rrsets.start_changeset()
    for rrset in existing:
        changeset.remove(rrset)
    if wanted is not None:
        changeset.add(wanted)
    changeset.apply()


def ensure_dns_rrsets(
    zone: Zone,
    dns_name: str,
    endpoints: Iterable[str],
    uplevel_cname: str,
    resolver: Resolver = lookup_host,
) -> None:
    """Converge the record sets for ``dns_name`` with as few changes as possible.

    Endpoints are resolved to IPv4 addresses first. With addresses,
    ``dns_name`` gets an A record set of them. Without, it gets a CNAME to ``uplevel_cname``, or no record when that is
    empty. Every change for one name is applied as a single changeset.
    """
    rrsets = _record_sets_of(zone, dns_name)
    addresses = resolve_endpoints(endpoints, resolver)
    existing = rrsets.get(dns_name)

    if not existing:
        logger.debug(f"No record sets found for {dns_name}")
        if not addresses:
            if not uplevel_cname:
                logger.debug(f"No record wanted for {dns_name} and none exists")
                return
            wanted = rrsets.new(dns_name, [uplevel_cname], MIN_DNS_TTL, RecordType.CNAME)
            logger.info(f"Creating CNAME {dns_name} -> {uplevel_cname}")
        else:
            wanted = rrsets.new(dns_name, addresses, MIN_DNS_TTL, RecordType.A)
            logger.info(f"Creating A records {dns_name} -> {addresses}")
        rrsets.start_changeset().add(wanted).apply()
        return

    if not addresses:
        wanted = rrsets.new(dns_name, [uplevel_cname], MIN_DNS_TTL, RecordType.CNAME)
    else:
        wanted = rrsets.new(dns_name, addresses, MIN_DNS_TTL, RecordType.A)

    if find_record_set(existing, wanted) is not None:
        logger.debug(f"Existing record sets for {dns_name} already match {wanted}")
        return

    if not addresses and not uplevel_cname:
        logger.info(f"Removing record sets for {dns_name}: {', '.join(map(str, existing))}")
        _replace(rrsets, existing, None)
        return

    logger.info(
        f"Replacing record sets for {dns_name}: {', '.join(map(str, existing))} -> {wanted}"
    )
    _replace(rrsets, existing, wanted)


class IngressDNSReconciler:
    """Publishes the zone, region and global records of federated ingresses."""

    def __init__(
        self,
        *,
        federation_client: FederationClient,
        dns_zone: Zone,
        federation_name: str,
        ingress_dns_suffix: str,
        domain: str,
        resolver: Resolver = lookup_host,
    ):
        self.federation_client = federation_client
        self.dns_zone = dns_zone
        self.federation_name = federation_name
        self.ingress_dns_suffix = ingress_dns_suffix
        self.domain = domain
        self.resolver = resolver

    def dns_names(self, cluster_name: str, ingress: FederatedIngress) -> List[str]:
        topology = self.federation_client.get_cluster_topology(cluster_name)
        if not topology.zones:
            raise TopologyLookupError(f"Cluster {cluster_name} reports no zone names")
        return build_dns_names(
            ingress.name,
            ingress.namespace,
            self.federation_name,
            self.ingress_dns_suffix,
            # TODO: multi-zone clusters only get a record for their first zone
            topology.zones[0],
            topology.region,
            self.domain,
        )

    def ensure_dns_records(self, cluster_name: str, ingress: FederatedIngress) -> None:
        """Make the records for ``ingress`` as seen from ``cluster_name`` correct.

        Levels are handled zone, region, global; the first failure stops the
        remaining levels.
        """
        dns_names = self.dns_names(cluster_name, ingress)
        endpoints = get_healthy_endpoints(cluster_name, ingress, self.federation_client)
        logger.debug(f"DNS names for {ingress.key} in {cluster_name}: {dns_names[:3]}")
        logger.debug(f"Endpoints for {ingress.key} in {cluster_name}: {endpoints}")

        for i, level_endpoints in enumerate(endpoints.by_level()):
            ensure_dns_rrsets(
                self.dns_zone, dns_names[i], level_endpoints, dns_names[i + 1], self.resolver
            )
