"""Ingress DNS controller loop.

One event source thread lists and watches federated ingresses and feeds every
change into a FIFO work queue. A fixed pool of worker threads takes ingresses
off the queue and reconciles their DNS records. Failed items are logged and
dropped; the next watch event or periodic re-list brings them back.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Deque, List, Optional, Tuple

from federated_ingress_dns.config import DEFAULT_INGRESS_DNS_SUFFIX
from federated_ingress_dns.dnsprovider import DNSProvider
from federated_ingress_dns.endpoints import parse_global_lb_status
from federated_ingress_dns.errors import ConfigError, FederatedDNSError
from federated_ingress_dns.federation import (
    FederatedIngress,
    FederationClient,
    WatchEventType,
)
from federated_ingress_dns.records import IngressDNSReconciler, Resolver, lookup_host
from federated_ingress_dns.zones import retrieve_or_create_dns_zone

logger = logging.getLogger(__name__)

# Pause before re-establishing a failed list/watch.
WATCH_RETRY_SECONDS = 1.0

# A watch blocked on the network only notices stop() at its next event.
EVENT_SOURCE_JOIN_SECONDS = 5.0


class ControllerState(Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class WorkQueue:
    """Unbounded FIFO shared by one producer and many consumers.

    After shut_down() no new items are accepted; items already queued are
    still handed out, then get() reports shutdown.
    """

    def __init__(self) -> None:
        self._items: Deque[FederatedIngress] = deque()
        self._cond = threading.Condition()
        self._shutting_down = False

    def add(self, item: FederatedIngress) -> bool:
        with self._cond:
            if self._shutting_down:
                return False
            self._items.append(item)
            self._cond.notify()
            return True

    def get(self) -> Tuple[Optional[FederatedIngress], bool]:
        """Block for the next item. Returns (item, shutdown)."""
        with self._cond:
            while not self._items and not self._shutting_down:
                self._cond.wait()
            if not self._items:
                return None, True
            return self._items.popleft(), False

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)


def wants_dns_records(ingress: FederatedIngress) -> bool:
    """Only ingresses with at least one local load balancer address get records."""
    return len(ingress.load_balancer) > 0


class IngressDNSController:
    """DNS controller for federated ingress endpoints."""

    def __init__(
        self,
        *,
        federation_client: FederationClient,
        dns_provider: Optional[DNSProvider],
        federation_name: str,
        domain: str,
        ingress_dns_suffix: str = "",
        workers: int = 1,
        resync_period_seconds: int = 0,
        resolver: Resolver = lookup_host,
    ):
        self.state = ControllerState.INITIALIZING
        self.federation_client = federation_client
        self.dns_provider = dns_provider
        self.federation_name = federation_name
        self.domain = domain
        self.ingress_dns_suffix = ingress_dns_suffix or DEFAULT_INGRESS_DNS_SUFFIX
        self.workers = workers
        self.resync_period_seconds = resync_period_seconds
        self.queue = WorkQueue()
        self._stop_event: Optional[threading.Event] = None
        self._source_thread: Optional[threading.Thread] = None
        self._worker_threads: List[threading.Thread] = []

        self._validate_config()
        self.dns_zone = retrieve_or_create_dns_zone(self.domain, dns_provider)
        self.reconciler = IngressDNSReconciler(
            federation_client=federation_client,
            dns_zone=self.dns_zone,
            federation_name=self.federation_name,
            ingress_dns_suffix=self.ingress_dns_suffix,
            domain=self.domain,
            resolver=resolver,
        )

    def _validate_config(self) -> None:
        if not self.federation_name:
            raise ConfigError("DNS controller should not be run without a federation name")
        if not self.domain:
            raise ConfigError("DNS controller must be run with a domain")
        if self.dns_provider is None:
            raise ConfigError("DNS controller should not be run without a DNS provider")
        if self.workers < 1:
            raise ConfigError(f"DNS controller needs at least one worker, got {self.workers}")

    # =========================================================================
    # Work Processing
    # =========================================================================

    def enqueue(self, ingress: FederatedIngress) -> None:
        if not self.queue.add(ingress):
            logger.debug(f"Work queue shut down, dropping {ingress.key}")

    def process_ingress(self, ingress: FederatedIngress) -> None:
        """Reconcile DNS records of one ingress for every cluster it spans."""
        if not wants_dns_records(ingress):
            logger.debug(
                f"Got ingress event for {ingress.key} but it has no load balancer addresses"
            )
            return
        logger.debug(f"Got ingress event for {ingress.key}")

        lb_statuses = parse_global_lb_status(ingress)
        if not lb_statuses:
            return
        for cluster_name in lb_statuses:
            self.reconciler.ensure_dns_records(cluster_name, ingress)

    def process_next(self) -> bool:
        """Handle one queued item. Returns False once the queue is shut down."""
        ingress, shutdown = self.queue.get()
        if shutdown or ingress is None:
            return False
        try:
            self.process_ingress(ingress)
        except FederatedDNSError as e:
            logger.error(f"Failed to ensure DNS records for ingress {ingress.key}: {e}")
        except Exception as e:
            logger.error(
                f"Unexpected error ensuring DNS records for ingress {ingress.key}: {e}",
                exc_info=True,
            )
        return True

    def _worker(self) -> None:
        while self.process_next():
            pass
        logger.info("Ingress DNS worker queue shutting down")

    # =========================================================================
    # Event Source
    # =========================================================================

    def _run_event_source(self, stop_event: threading.Event) -> None:
        timeout = self.resync_period_seconds or None
        while not stop_event.is_set():
            try:
                for ingress in self.federation_client.list_ingresses():
                    self.enqueue(ingress)
                for event in self.federation_client.watch_ingresses(timeout_seconds=timeout):
                    if stop_event.is_set():
                        return
                    logger.debug(f"Watch event {event.type.value} for {event.ingress.key}")
                    ingress = event.ingress
                    if event.type is WatchEventType.DELETED:
                        # Objects removed without finalizers carry no deletionTimestamp.
                        ingress = ingress.as_deleted()
                    self.enqueue(ingress)
            except Exception as e:
                if stop_event.is_set():
                    return
                logger.error(f"Ingress watch failed, restarting: {e}")
                stop_event.wait(WATCH_RETRY_SECONDS)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, stop_event: threading.Event) -> None:
        """Start the event source and workers without blocking."""
        logger.info(
            f"Starting federation ingress DNS controller with {self.workers} worker(s) "
            f"for domain {self.domain}"
        )
        self._stop_event = stop_event
        self._source_thread = threading.Thread(
            target=self._run_event_source,
            args=(stop_event,),
            name="ingress-watch",
            daemon=True,
        )
        self._worker_threads = [
            threading.Thread(target=self._worker, name=f"ingress-dns-worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        self._source_thread.start()
        for thread in self._worker_threads:
            thread.start()
        self.state = ControllerState.RUNNING

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the event source, stop accepting work and wait for in-flight items."""
        self.state = ControllerState.DRAINING
        if self._stop_event is not None:
            self._stop_event.set()
        self.federation_client.stop()
        self.queue.shut_down()
        for thread in self._worker_threads:
            thread.join(timeout)
        if self._source_thread is not None:
            self._source_thread.join(EVENT_SOURCE_JOIN_SECONDS if timeout is None else timeout)
        self.state = ControllerState.STOPPED
        logger.info("Stopped federation ingress DNS controller")

    def run(self, stop_event: threading.Event) -> None:
        """Run until ``stop_event`` is set, then drain."""
        self.start(stop_event)
        stop_event.wait()
        self.shutdown()
