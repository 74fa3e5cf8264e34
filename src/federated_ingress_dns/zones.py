"""Hosted zone selection."""

from __future__ import annotations

import logging
from typing import Optional

from federated_ingress_dns.dnsprovider import DNSProvider, Zone, Zones
from federated_ingress_dns.errors import ConfigError, ProviderError, ZoneResolutionError

logger = logging.getLogger(__name__)


def get_dns_zone(domain: str, zones: Zones) -> Optional[Zone]:
    """Return the most specific zone whose name occurs in ``domain``.

    Zones are tried longest name first, so with zones for example.com and
    d1.example.com the domain d1.example.com selects d1.example.com.
    """
    try:
        candidates = zones.list()
    except ProviderError as e:
        raise ZoneResolutionError(f"Error querying for DNS zones: {e}") from e

    find_name = domain.rstrip(".")
    for zone in sorted(candidates, key=lambda z: len(z.name), reverse=True):
        clean_zone = zone.name.rstrip(".")
        logger.debug(f"Considering zone {zone.name} for domain {domain}")
        if clean_zone and clean_zone in find_name:
            return zone
    return None


def retrieve_or_create_dns_zone(domain: str, provider: DNSProvider) -> Zone:
    """Find the hosted zone for ``domain``, creating it when none matches."""
    zones = provider.zones()
    if zones is None:
        raise ConfigError(
            f"DNS provider {provider.name} does not support zone enumeration, "
            "which is required for creating DNS records"
        )

    zone = get_dns_zone(domain, zones)
    if zone is not None:
        logger.info(f"Using DNS zone {zone.name} for domain {domain}")
        return zone

    if not domain:
        raise ZoneResolutionError("A domain is required to create a DNS zone automatically")

    logger.info(f"DNS zone {domain} not found. Creating DNS zone {domain}")
    try:
        zone = zones.new(domain)
    except ProviderError as e:
        raise ZoneResolutionError(f"Failed to create DNS zone {domain}: {e}") from e
    logger.info(
        f"DNS zone {zone.name} created. DNS resolution will not work until the name is "
        "registered with a registrar that points at this provider's name servers"
    )
    return zone
