"""Dyn (Dynect) DNS provider.

Dyn stores every value of a multi-value record set as a separate record with
its own id, so record sets are assembled from, and split back into, individual
records. Changes are only visible after the zone is published.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

import requests

from federated_ingress_dns.dnsprovider import (
    Changeset,
    DNSProvider,
    RecordSet,
    RecordSets,
    RecordType,
    Zone,
    Zones,
    coerce_ttl,
)
from federated_ingress_dns.errors import ConfigError, ProviderError, UnsupportedError

logger = logging.getLogger(__name__)

DEFAULT_DYN_URL = "https://api.dynect.net"

RDATA_FIELDS = {
    RecordType.A: "address",
    RecordType.CNAME: "cname",
}


class DynClient:
    """Thin REST client for the Dynect API."""

    def __init__(
        self,
        customer: str,
        user: str,
        password: str,
        url: str = DEFAULT_DYN_URL,
        timeout_seconds: float = 10.0,
    ):
        self._customer = customer
        self._user = user
        self._password = password
        self._url = url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        self._token_lock = threading.Lock()
        self._token = ""

    def login(self) -> None:
        body = {
            "customer_name": self._customer,
            "user_name": self._user,
            "password": self._password,
        }
        try:
            response = self._session.post(
                f"{self._url}/REST/Session/", json=body, timeout=self._timeout
            )
            response.raise_for_status()
            token = response.json()["data"]["token"]
        except (requests.exceptions.RequestException, ValueError, KeyError, TypeError) as e:
            raise ProviderError(f"Failed to log into Dyn as {self._user}: {e}") from e
        with self._token_lock:
            self._token = token
        logger.info(f"Signed into Dyn as {self._customer}/{self._user}")

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        with self._token_lock:
            token = self._token
        if not token:
            self.login()
            with self._token_lock:
                token = self._token
        try:
            response = self._session.request(
                method,
                f"{self._url}/REST/{path.lstrip('/')}",
                json=body,
                headers={"Auth-Token": token},
                timeout=self._timeout,
            )
            response.raise_for_status()
            return response.json().get("data")
        except (requests.exceptions.RequestException, ValueError) as e:
            raise ProviderError(f"Dyn {method} {path} failed: {e}") from e

    def get_record_urls(self, zone: str, fqdn: str = "") -> List[str]:
        path = f"AllRecord/{zone}/{fqdn}/" if fqdn else f"AllRecord/{zone}/"
        data = self._request("GET", path)
        return [u for u in (data or []) if isinstance(u, str)]

    def get_record(self, url: str) -> Dict[str, Any]:
        # urls look like /REST/ARecord/<zone>/<fqdn>/<id>
        path = url.split("/REST/", 1)[-1]
        data = self._request("GET", path)
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected Dyn response for {url}: {data!r}")
        return data

    def create_record(self, zone: str, fqdn: str, rrs_type: RecordType, value: str, ttl: int) -> None:
        body = {"rdata": {RDATA_FIELDS[rrs_type]: value}, "ttl": str(ttl)}
        self._request("POST", f"{rrs_type.value}Record/{zone}/{fqdn}/", body)

    def delete_record(self, zone: str, fqdn: str, rrs_type: RecordType, record_id: str) -> None:
        self._request("DELETE", f"{rrs_type.value}Record/{zone}/{fqdn}/{record_id}")

    def publish_zone(self, zone: str) -> None:
        self._request("PUT", f"Zone/{zone}/", {"publish": True})


def _parse_record(raw: Dict[str, Any]) -> Optional[Tuple[str, RecordType, int, str, str]]:
    """Return (fqdn, type, ttl, value, id) for A/CNAME records, else None."""
    try:
        rrs_type = RecordType(raw.get("record_type"))
    except ValueError:
        return None
    rdata = raw.get("rdata") or {}
    value = str(rdata.get(RDATA_FIELDS[rrs_type]) or "")
    if rrs_type == RecordType.CNAME:
        value = value.rstrip(".")
    return (
        str(raw.get("fqdn") or ""),
        rrs_type,
        coerce_ttl(raw.get("ttl")),
        value,
        str(raw.get("record_id") or ""),
    )


class DynChangeset(Changeset):
    def __init__(self, rrsets: "DynRecordSets"):
        super().__init__()
        self._rrsets = rrsets

    def apply(self) -> None:
        if self.is_empty():
            return
        client = self._rrsets.client
        zone = self._rrsets.zone_name

        for rrset in self.removals:
            fqdn = self._rrsets.fqdn(rrset.name)
            ids_by_value = {
                value: record_id
                for value, record_id in self._rrsets.record_ids(fqdn, rrset.type)
            }
            for value in rrset.rrdatas:
                record_id = ids_by_value.get(value)
                if not record_id:
                    raise ProviderError(f"Couldn't find Dyn record id for {fqdn} -> {value}")
                client.delete_record(zone, fqdn, rrset.type, record_id)
                logger.info(f"Deleted Dyn record {fqdn} {rrset.type.value} {value}")

        for rrset in self.additions:
            fqdn = self._rrsets.fqdn(rrset.name)
            for value in rrset.rrdatas:
                client.create_record(zone, fqdn, rrset.type, value, rrset.ttl)
                logger.info(f"Added Dyn record {fqdn} {rrset.type.value} {value}")

        client.publish_zone(zone)


class DynRecordSets(RecordSets):
    def __init__(self, client: DynClient, zone_name: str):
        self.client = client
        self.zone_name = zone_name

    def fqdn(self, name: str) -> str:
        name = name.rstrip(".")
        if name == self.zone_name or name.endswith("." + self.zone_name):
            return name
        return f"{name}.{self.zone_name}"

    def _records(self, fqdn: str) -> List[Tuple[str, RecordType, int, str, str]]:
        records = []
        for url in self.client.get_record_urls(self.zone_name, fqdn):
            parsed = _parse_record(self.client.get_record(url))
            if parsed is not None:
                records.append(parsed)
        return records

    def record_ids(self, fqdn: str, rrs_type: RecordType) -> List[Tuple[str, str]]:
        return [
            (value, record_id)
            for name, t, _, value, record_id in self._records(fqdn)
            if name == fqdn and t == rrs_type
        ]

    def _group(self, records: List[Tuple[str, RecordType, int, str, str]]) -> List[RecordSet]:
        grouped: Dict[Tuple[str, RecordType], List[Tuple[int, str]]] = {}
        for fqdn, rrs_type, ttl, value, _ in records:
            grouped.setdefault((fqdn, rrs_type), []).append((ttl, value))
        return [
            RecordSet(name=fqdn, type=rrs_type, ttl=items[0][0], rrdatas=tuple(v for _, v in items))
            for (fqdn, rrs_type), items in grouped.items()
        ]

    def list(self) -> List[RecordSet]:
        return self._group(self._records(""))

    def get(self, name: str) -> List[RecordSet]:
        fqdn = self.fqdn(name)
        return self._group([r for r in self._records(fqdn) if r[0] == fqdn])

    def start_changeset(self) -> Changeset:
        return DynChangeset(self)


class DynZone(Zone):
    def __init__(self, client: DynClient, name: str):
        self._client = client
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def record_sets(self) -> Optional[RecordSets]:
        return DynRecordSets(self._client, self._name)


class DynZones(Zones):
    def __init__(self, client: DynClient, zone_names: List[str]):
        self._zones = [DynZone(client, name) for name in zone_names]

    def list(self) -> List[Zone]:
        return list(self._zones)

    def new(self, name: str) -> Zone:
        raise UnsupportedError(f"Dyn provider cannot create zone {name}; add it to the config")


class DynDNSProvider(DNSProvider):
    """Dyn Managed DNS provider implementation."""

    def __init__(self, client: DynClient, zone_names: List[str]):
        self._client = client
        self._zones = DynZones(client, zone_names)

    @property
    def name(self) -> str:
        return "Dyn"

    def zones(self) -> Optional[Zones]:
        return self._zones


def _split_zones(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value]
    else:
        items = str(value or "").split(",")
    return [z.strip().rstrip(".") for z in items if z and z.strip()]


def dyn_provider_from_config(config: Dict[str, Any]) -> DynDNSProvider:
    """Build the provider from a parsed provider config mapping."""
    zone_names = _split_zones(config.get("zones"))
    errors = []
    if not zone_names:
        errors.append("Need to provide at least one DNS zone in the Dyn config")
    for key in ("customer", "user", "password"):
        if not str(config.get(key) or "").strip():
            errors.append(f"Need to provide '{key}' in the Dyn config")
    if errors:
        raise ConfigError("; ".join(errors))

    client = DynClient(
        customer=str(config["customer"]).strip(),
        user=str(config["user"]).strip(),
        password=str(config["password"]),
        url=str(config.get("url") or DEFAULT_DYN_URL),
    )
    logger.info(f"Using Dyn DNS provider for zones: {', '.join(zone_names)}")
    return DynDNSProvider(client, zone_names)
