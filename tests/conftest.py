"""Shared fixtures: a scripted federation API and an in-memory DNS backend."""

import threading
from typing import Dict, Iterable, Iterator, List, Optional

import pytest

from federated_ingress_dns.errors import TopologyLookupError
from federated_ingress_dns.federation import (
    ClusterTopology,
    FederatedIngress,
    FederationClient,
    WatchEvent,
)
from federated_ingress_dns.providers.inmemory import InMemoryChangeset, InMemoryDNSProvider


class FakeFederationClient(FederationClient):
    """Federation client serving fixed cluster topology and scripted watch events."""

    def __init__(
        self,
        clusters: Dict[str, ClusterTopology],
        ingresses: Iterable[FederatedIngress] = (),
        events: Iterable[WatchEvent] = (),
    ):
        self.clusters = dict(clusters)
        self.ingresses: List[FederatedIngress] = list(ingresses)
        self.events: List[WatchEvent] = list(events)
        self.topology_calls: List[str] = []
        self.list_calls = 0
        self.stopped = threading.Event()

    def list_ingresses(self) -> List[FederatedIngress]:
        self.list_calls += 1
        return list(self.ingresses)

    def watch_ingresses(self, timeout_seconds: Optional[int] = None) -> Iterator[WatchEvent]:
        events, self.events = self.events, []
        for event in events:
            yield event
        # Hold the stream open like a real watch until stop() is called.
        self.stopped.wait()

    def get_cluster_topology(self, cluster_name: str) -> ClusterTopology:
        self.topology_calls.append(cluster_name)
        if cluster_name not in self.clusters:
            raise TopologyLookupError(f"cluster {cluster_name} not found")
        return self.clusters[cluster_name]

    def stop(self) -> None:
        self.stopped.set()


@pytest.fixture
def federation_client() -> FakeFederationClient:
    """Two clusters in different regions, as used throughout the tests."""
    return FakeFederationClient(
        {
            "c1": ClusterTopology(zones=("foozone",), region="fooregion"),
            "c2": ClusterTopology(zones=("barzone",), region="barregion"),
        }
    )


@pytest.fixture
def dns_provider() -> InMemoryDNSProvider:
    return InMemoryDNSProvider(zones=["example.com"])


@pytest.fixture
def applied_changesets(monkeypatch) -> List[InMemoryChangeset]:
    """Record every changeset applied against an in-memory provider."""
    applied: List[InMemoryChangeset] = []
    original_apply = InMemoryChangeset.apply

    def tracking_apply(self):
        applied.append(self)
        original_apply(self)

    monkeypatch.setattr(InMemoryChangeset, "apply", tracking_apply)
    return applied
