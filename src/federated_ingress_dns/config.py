"""Controller configuration.

Values come from the environment; provider credentials come from an optional
YAML file named by DNS_PROVIDER_CONFIG.

Environment variables:

    FEDERATION_NAME        Federation name (required)
    DNS_DOMAIN             Domain to publish records under (required)
    DNS_PROVIDER           "dyndns" or "inmemory" (default: dyndns)
    DNS_PROVIDER_CONFIG    Path to the provider YAML config (optional)
                           Example for dyndns:
                             zones: example.com
                             customer: acme
                             user: dns-bot
                             password: secret
    INGRESS_DNS_SUFFIX     Label placed between the federation name and the
                           location labels (default: ing)
    WORKERS                Number of worker threads (default: 1)
    RESYNC_PERIOD_SECONDS  Full re-list interval, 0 disables (default: 30)
    KUBECONFIG             Kubeconfig for the federation API server; in-cluster
                           config is used when unset
    LOG_LEVEL              DEBUG, INFO, WARNING, ERROR (default: INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from federated_ingress_dns.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_INGRESS_DNS_SUFFIX = "ing"
DEFAULT_DNS_PROVIDER = "dyndns"
DEFAULT_WORKERS = 1
DEFAULT_RESYNC_PERIOD_SECONDS = 30


@dataclass(frozen=True)
class ControllerConfig:
    federation_name: str
    domain: str
    dns_provider: str = DEFAULT_DNS_PROVIDER
    dns_provider_config: str = ""
    ingress_dns_suffix: str = DEFAULT_INGRESS_DNS_SUFFIX
    workers: int = DEFAULT_WORKERS
    resync_period_seconds: int = DEFAULT_RESYNC_PERIOD_SECONDS
    kubeconfig: str = ""
    log_level: str = "INFO"

    def validate(self) -> None:
        """Raise ConfigError describing every problem found."""
        errors: List[str] = []
        if not self.federation_name:
            errors.append("FEDERATION_NAME is required")
        if not self.domain:
            errors.append("DNS_DOMAIN is required")
        if not self.dns_provider:
            errors.append("DNS_PROVIDER is required")
        if self.workers < 1:
            errors.append(f"WORKERS must be at least 1, got {self.workers}")
        if self.resync_period_seconds < 0:
            errors.append(
                f"RESYNC_PERIOD_SECONDS must not be negative, got {self.resync_period_seconds}"
            )
        if errors:
            raise ConfigError("; ".join(errors))


def _parse_int(value: Optional[str], name: str, default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def load_config(environ: Optional[Mapping[str, str]] = None) -> ControllerConfig:
    """Build a ControllerConfig from environment variables."""
    env = os.environ if environ is None else environ
    suffix = env.get("INGRESS_DNS_SUFFIX", "").strip() or DEFAULT_INGRESS_DNS_SUFFIX
    return ControllerConfig(
        federation_name=env.get("FEDERATION_NAME", "").strip(),
        domain=env.get("DNS_DOMAIN", "").strip().rstrip("."),
        dns_provider=env.get("DNS_PROVIDER", DEFAULT_DNS_PROVIDER).lower().strip(),
        dns_provider_config=env.get("DNS_PROVIDER_CONFIG", "").strip(),
        ingress_dns_suffix=suffix,
        workers=_parse_int(env.get("WORKERS"), "WORKERS", DEFAULT_WORKERS),
        resync_period_seconds=_parse_int(
            env.get("RESYNC_PERIOD_SECONDS"), "RESYNC_PERIOD_SECONDS", DEFAULT_RESYNC_PERIOD_SECONDS
        ),
        kubeconfig=env.get("KUBECONFIG", "").strip(),
        log_level=env.get("LOG_LEVEL", "INFO").upper().strip(),
    )


def load_provider_config(path: str) -> Dict[str, Any]:
    """Load the provider YAML config. An empty path yields an empty mapping."""
    if not path:
        return {}
    config_file = Path(path)
    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load DNS provider config from {config_file}: {e}") from e
    if data is None:
        logger.warning(f"DNS provider config {config_file} is empty")
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"DNS provider config {config_file} must be a mapping, got {type(data).__name__}"
        )
    return data
