"""Unit tests for the Dyn DNS provider."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from federated_ingress_dns.dnsprovider import RecordSet, RecordType
from federated_ingress_dns.errors import ConfigError, ProviderError, UnsupportedError
from federated_ingress_dns.providers.dyndns import (
    DynClient,
    DynDNSProvider,
    dyn_provider_from_config,
)

ZONE = "example.com"
FQDN = "www.example.com"


def make_response(data) -> MagicMock:
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json.return_value = {"data": data}
    return response


def make_provider() -> DynDNSProvider:
    client = DynClient(customer="acme", user="foo", password="bar", url="https://dyn.local")
    client._token = "token"
    return DynDNSProvider(client, [ZONE])


def record(record_type: str, record_id: str, value: str, ttl: str = "180") -> dict:
    field = "address" if record_type == "A" else "cname"
    return {
        "fqdn": FQDN,
        "record_type": record_type,
        "ttl": ttl,
        "rdata": {field: value},
        "record_id": record_id,
        "zone": ZONE,
    }


def fake_records(records: dict):
    """Build a session.request side effect serving ``records`` keyed by id."""

    def _request(method, url, json=None, headers=None, timeout=None):
        path = url.split("/REST/", 1)[1]
        if method == "GET" and path.startswith("AllRecord/"):
            return make_response(
                [f"/REST/{r['record_type']}Record/{ZONE}/{FQDN}/{rid}" for rid, r in records.items()]
            )
        if method == "GET":
            return make_response(records[path.rsplit("/", 1)[1]])
        return make_response({})

    return _request


class TestDynConfig:
    """Tests for building the provider from config."""

    def test_missing_keys_are_all_reported(self) -> None:
        with pytest.raises(ConfigError) as excinfo:
            dyn_provider_from_config({"zones": "example.com"})

        message = str(excinfo.value)
        assert "customer" in message
        assert "user" in message
        assert "password" in message

    def test_missing_zones_is_reported(self) -> None:
        with pytest.raises(ConfigError):
            dyn_provider_from_config({"customer": "acme", "user": "foo", "password": "bar"})

    def test_zones_are_split(self) -> None:
        provider = dyn_provider_from_config(
            {"zones": "example.com, example.org.", "customer": "acme", "user": "foo", "password": "bar"}
        )

        assert [z.name for z in provider.zones().list()] == ["example.com", "example.org"]


class TestDynLogin:
    """Tests for session login."""

    def test_login_stores_token(self) -> None:
        client = DynClient(customer="acme", user="foo", password="bar", url="https://dyn.local")

        with patch.object(client._session, "post") as mock_post:
            mock_post.return_value = make_response({"token": "abc"})
            client.login()

        assert client._token == "abc"
        mock_post.assert_called_once_with(
            "https://dyn.local/REST/Session/",
            json={"customer_name": "acme", "user_name": "foo", "password": "bar"},
            timeout=10.0,
        )

    def test_login_failure_raises_provider_error(self) -> None:
        client = DynClient(customer="acme", user="foo", password="bar")

        with patch.object(client._session, "post") as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError("refused")
            with pytest.raises(ProviderError):
                client.login()


class TestDynRecordSets:
    """Tests for reading record sets."""

    def test_get_groups_records_into_sets(self) -> None:
        provider = make_provider()
        rrsets = provider.zones().list()[0].record_sets()
        records = {"1": record("A", "1", "10.0.0.1"), "2": record("A", "2", "10.0.0.2")}

        with patch.object(rrsets.client._session, "request", side_effect=fake_records(records)):
            result = rrsets.get("www")

        assert result == [RecordSet(FQDN, RecordType.A, 180, ("10.0.0.1", "10.0.0.2"))]

    def test_cname_trailing_dot_and_bad_ttl_are_normalized(self) -> None:
        provider = make_provider()
        rrsets = provider.zones().list()[0].record_sets()
        records = {"7": record("CNAME", "7", "up.example.com.", ttl="-1")}

        with patch.object(rrsets.client._session, "request", side_effect=fake_records(records)):
            result = rrsets.get(FQDN)

        assert result == [RecordSet(FQDN, RecordType.CNAME, 60, ("up.example.com",))]

    def test_request_failure_raises_provider_error(self) -> None:
        provider = make_provider()
        rrsets = provider.zones().list()[0].record_sets()

        with patch.object(rrsets.client._session, "request") as mock_request:
            mock_request.side_effect = requests.exceptions.Timeout("slow")
            with pytest.raises(ProviderError):
                rrsets.get(FQDN)


class TestDynChangeset:
    """Tests for applying changesets."""

    def test_apply_deletes_then_creates_then_publishes(self) -> None:
        provider = make_provider()
        rrsets = provider.zones().list()[0].record_sets()
        records = {"1": record("A", "1", "10.0.0.1")}
        existing = RecordSet(FQDN, RecordType.A, 180, ("10.0.0.1",))
        wanted = RecordSet(FQDN, RecordType.CNAME, 180, ("up.example.com",))

        with patch.object(
            rrsets.client._session, "request", side_effect=fake_records(records)
        ) as mock_request:
            rrsets.start_changeset().add(wanted).remove(existing).apply()

        mutations = [
            (c.args[0], c.args[1].split("/REST/", 1)[1], c.kwargs.get("json"))
            for c in mock_request.call_args_list
            if c.args[0] != "GET"
        ]
        assert mutations == [
            ("DELETE", f"ARecord/{ZONE}/{FQDN}/1", None),
            (
                "POST",
                f"CNAMERecord/{ZONE}/{FQDN}/",
                {"rdata": {"cname": "up.example.com"}, "ttl": "180"},
            ),
            ("PUT", f"Zone/{ZONE}/", {"publish": True}),
        ]

    def test_apply_fails_when_record_to_remove_is_missing(self) -> None:
        provider = make_provider()
        rrsets = provider.zones().list()[0].record_sets()
        stale = RecordSet(FQDN, RecordType.A, 180, ("10.0.0.9",))

        with patch.object(rrsets.client._session, "request", side_effect=fake_records({})):
            with pytest.raises(ProviderError):
                rrsets.start_changeset().remove(stale).apply()

    def test_empty_changeset_makes_no_requests(self) -> None:
        provider = make_provider()
        rrsets = provider.zones().list()[0].record_sets()

        with patch.object(rrsets.client._session, "request") as mock_request:
            rrsets.start_changeset().apply()

        mock_request.assert_not_called()


def test_zone_creation_is_unsupported() -> None:
    provider = make_provider()

    with pytest.raises(UnsupportedError):
        provider.zones().new("example.org")
