#!/usr/bin/env python3
"""federated-ingress-dns - DNS for federated ingresses

Publishes zone, region and global DNS records that steer clients to the
healthy load balancers of ingresses replicated across a federation of
clusters. See federated_ingress_dns.config for the environment variables.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading

from federated_ingress_dns import __version__
from federated_ingress_dns.config import ControllerConfig, load_config, load_provider_config
from federated_ingress_dns.controller import IngressDNSController
from federated_ingress_dns.errors import FederatedDNSError
from federated_ingress_dns.federation import KubernetesFederationClient
from federated_ingress_dns.providers import create_dns_provider

logger = logging.getLogger("federated_ingress_dns")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_controller(config: ControllerConfig) -> IngressDNSController:
    """Create providers and the controller. Any failure here is fatal."""
    config.validate()
    dns_provider = create_dns_provider(
        config.dns_provider, load_provider_config(config.dns_provider_config)
    )
    federation_client = KubernetesFederationClient.from_kubeconfig(config.kubeconfig)
    return IngressDNSController(
        federation_client=federation_client,
        dns_provider=dns_provider,
        federation_name=config.federation_name,
        domain=config.domain,
        ingress_dns_suffix=config.ingress_dns_suffix,
        workers=config.workers,
        resync_period_seconds=config.resync_period_seconds,
    )


def main() -> None:
    """Main entry point."""
    try:
        config = load_config()
    except FederatedDNSError as e:
        configure_logging("INFO")
        logger.error(f"Configuration validation failed: {e}")
        sys.exit(1)

    configure_logging(config.log_level)
    logger.info(f"federated-ingress-dns {__version__}")
    logger.info(f"Federation: {config.federation_name}")
    logger.info(f"Domain: {config.domain}")
    logger.info(f"DNS Provider: {config.dns_provider}")

    try:
        controller = build_controller(config)
    except FederatedDNSError as e:
        logger.error(f"Failed to start: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error during startup: {e}", exc_info=True)
        sys.exit(1)

    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    controller.run(stop_event)


if __name__ == "__main__":
    main()
