"""Concrete DNS provider implementations and the provider factory."""

from typing import Any, Dict, List

from federated_ingress_dns.dnsprovider import DNSProvider
from federated_ingress_dns.errors import ConfigError
from federated_ingress_dns.providers.dyndns import DynDNSProvider, dyn_provider_from_config
from federated_ingress_dns.providers.inmemory import InMemoryDNSProvider

SUPPORTED_PROVIDERS: List[str] = ["dyndns", "inmemory"]


def create_dns_provider(name: str, config: Dict[str, Any]) -> DNSProvider:
    """Factory function to create the configured DNS provider."""
    name = (name or "").lower().strip()
    if name == "dyndns":
        return dyn_provider_from_config(config)
    elif name == "inmemory":
        zones = config.get("zones") or []
        if isinstance(zones, str):
            zones = [z.strip() for z in zones.split(",") if z.strip()]
        return InMemoryDNSProvider(zones=zones)
    else:
        raise ConfigError(
            f"Unsupported DNS provider: '{name}'. Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )


__all__ = [
    "DynDNSProvider",
    "InMemoryDNSProvider",
    "SUPPORTED_PROVIDERS",
    "create_dns_provider",
]
