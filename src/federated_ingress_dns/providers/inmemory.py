"""In-process DNS provider.

Holds zones and record sets in memory. Useful for dry runs and as the DNS
backend in tests; it enforces the same rules a real backend would (no
duplicate record sets, removals must match an existing set exactly).
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from federated_ingress_dns.dnsprovider import (
    Changeset,
    DNSProvider,
    RecordSet,
    RecordSets,
    Zone,
    Zones,
    normalize_name,
)
from federated_ingress_dns.errors import ProviderError, ZoneResolutionError

logger = logging.getLogger(__name__)


class InMemoryChangeset(Changeset):
    def __init__(self, rrsets: "InMemoryRecordSets"):
        super().__init__()
        self._rrsets = rrsets

    def apply(self) -> None:
        if self.is_empty():
            return
        zone = self._rrsets.zone
        with zone.lock:
            staged = list(zone.records)
            for rrset in self.removals:
                if rrset not in staged:
                    raise ProviderError(
                        f"Attempt to delete non-existent record set {rrset} in zone {zone.name}"
                    )
                staged.remove(rrset)
            for rrset in self.additions:
                for existing in staged:
                    if (
                        normalize_name(existing.name) == normalize_name(rrset.name)
                        and existing.type == rrset.type
                    ):
                        raise ProviderError(
                            f"Attempt to create duplicate record set {rrset} in zone {zone.name}"
                        )
                staged.append(rrset)
            zone.records = staged
        for rrset in self.removals:
            logger.info(f"Removed record set {rrset}")
        for rrset in self.additions:
            logger.info(f"Added record set {rrset}")


class InMemoryRecordSets(RecordSets):
    def __init__(self, zone: "InMemoryZone"):
        self.zone = zone

    def list(self) -> List[RecordSet]:
        with self.zone.lock:
            return list(self.zone.records)

    def get(self, name: str) -> List[RecordSet]:
        wanted = normalize_name(name)
        with self.zone.lock:
            return [r for r in self.zone.records if normalize_name(r.name) == wanted]

    def start_changeset(self) -> Changeset:
        return InMemoryChangeset(self)


class InMemoryZone(Zone):
    def __init__(self, name: str, records: Iterable[RecordSet] = ()):
        self._name = name
        self.records: List[RecordSet] = list(records)
        self.lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def record_sets(self) -> Optional[RecordSets]:
        return InMemoryRecordSets(self)


class InMemoryZones(Zones):
    def __init__(self) -> None:
        self._zones: Dict[str, InMemoryZone] = {}
        self._lock = threading.Lock()

    def list(self) -> List[Zone]:
        with self._lock:
            return list(self._zones.values())

    def new(self, name: str) -> Zone:
        key = normalize_name(name)
        with self._lock:
            if key in self._zones:
                raise ZoneResolutionError(f"Zone {name} already exists")
            zone = InMemoryZone(name)
            self._zones[key] = zone
        logger.info(f"Created zone {name}")
        return zone


class InMemoryDNSProvider(DNSProvider):
    """DNS provider backed by process memory."""

    def __init__(self, zones: Iterable[str] = ()):
        self._zones = InMemoryZones()
        for zone_name in zones:
            self._zones.new(zone_name)

    @property
    def name(self) -> str:
        return "in-memory"

    def zones(self) -> Optional[Zones]:
        return self._zones
