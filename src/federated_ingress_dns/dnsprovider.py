"""Abstract DNS provider contract.

A provider exposes hosted zones, each zone exposes its resource record sets,
and record sets are mutated only through changesets that are applied as one
unit. Capabilities a backend lacks are signalled by returning ``None`` from
:meth:`DNSProvider.zones` or :meth:`Zone.record_sets`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Minimum safe TTL, used for every record the controller publishes.
MIN_DNS_TTL = 180

# TTL substituted when a provider hands back something unusable.
FALLBACK_TTL = 60


class RecordType(Enum):
    """Record types the controller publishes."""

    A = "A"
    CNAME = "CNAME"


def coerce_ttl(value: Any) -> int:
    """Return ``value`` as a non-negative int, or FALLBACK_TTL if it is not one."""
    try:
        ttl = int(value)
    except (TypeError, ValueError):
        logger.error(f"Invalid ttl {value!r}, using {FALLBACK_TTL} seconds")
        return FALLBACK_TTL
    if ttl < 0:
        logger.error(f"Invalid ttl {value!r}, using {FALLBACK_TTL} seconds")
        return FALLBACK_TTL
    return ttl


def normalize_name(name: str) -> str:
    return name.rstrip(".").lower()


@dataclass(frozen=True)
class RecordSet:
    """A named set of records of one type sharing a TTL."""

    name: str
    type: RecordType
    ttl: int
    rrdatas: Tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.name} {self.type.value} {self.ttl} [{' '.join(self.rrdatas)}]"


def record_sets_equivalent(a: RecordSet, b: RecordSet) -> bool:
    """Compare name, type, TTL and data, ignoring the order of the data."""
    return (
        normalize_name(a.name) == normalize_name(b.name)
        and a.type == b.type
        and a.ttl == b.ttl
        and set(a.rrdatas) == set(b.rrdatas)
    )


def find_record_set(candidates: Iterable[RecordSet], wanted: RecordSet) -> Optional[RecordSet]:
    """Return the first candidate equivalent to ``wanted``, if any."""
    for candidate in candidates:
        if len(candidate.rrdatas) != len(wanted.rrdatas):
            continue
        if record_sets_equivalent(candidate, wanted):
            return candidate
    return None


class Changeset(ABC):
    """Batch of record set additions and removals applied as one unit.

    ``apply`` must perform every removal before any addition.
    """

    def __init__(self) -> None:
        self.additions: List[RecordSet] = []
        self.removals: List[RecordSet] = []

    def add(self, rrset: RecordSet) -> "Changeset":
        self.additions.append(rrset)
        return self

    def remove(self, rrset: RecordSet) -> "Changeset":
        self.removals.append(rrset)
        return self

    def is_empty(self) -> bool:
        return not self.additions and not self.removals

    @abstractmethod
    def apply(self) -> None:
        """Submit the queued changes. Raises ProviderError on failure."""
        pass


class RecordSets(ABC):
    """Record set store of one hosted zone."""

    @abstractmethod
    def list(self) -> List[RecordSet]:
        """Return every record set in the zone."""
        pass

    @abstractmethod
    def get(self, name: str) -> List[RecordSet]:
        """Return the record sets named ``name``; empty if there are none."""
        pass

    @abstractmethod
    def start_changeset(self) -> Changeset:
        pass

    def new(
        self, name: str, rrdatas: Sequence[str], ttl: int, rrs_type: RecordType
    ) -> RecordSet:
        """Build a record set value. Nothing is sent to the provider."""
        return RecordSet(name=name, type=rrs_type, ttl=coerce_ttl(ttl), rrdatas=tuple(rrdatas))


class Zone(ABC):
    """Hosted zone."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def record_sets(self) -> Optional[RecordSets]:
        """Return the record set store, or None when unsupported."""
        pass


class Zones(ABC):
    """Zone enumeration and creation."""

    @abstractmethod
    def list(self) -> List[Zone]:
        pass

    @abstractmethod
    def new(self, name: str) -> Zone:
        pass


class DNSProvider(ABC):
    """Abstract base class for DNS providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name for logging."""
        pass

    @abstractmethod
    def zones(self) -> Optional[Zones]:
        """Return zone enumeration, or None when unsupported."""
        pass
