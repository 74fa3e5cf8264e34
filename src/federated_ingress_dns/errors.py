"""Exception types raised by the DNS controller."""


class FederatedDNSError(Exception):
    """Base class for all controller errors."""


class ConfigError(FederatedDNSError):
    """Missing or invalid controller configuration."""


class ZoneResolutionError(FederatedDNSError):
    """Hosted zone could not be listed, selected or created."""


class TopologyLookupError(FederatedDNSError):
    """Cluster zone/region metadata could not be fetched."""


class AnnotationParseError(FederatedDNSError):
    """Global load balancer status annotation is not valid JSON."""


class EndpointDataError(FederatedDNSError):
    """Load balancer entry has neither an IP nor a hostname."""


class ResolutionError(FederatedDNSError):
    """Endpoint hostname could not be resolved to addresses."""


class ProviderError(FederatedDNSError):
    """DNS provider call failed."""


class UnsupportedError(ProviderError):
    """DNS provider does not offer a required capability."""
