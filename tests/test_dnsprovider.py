"""Unit tests for the DNS provider contract helpers."""

from federated_ingress_dns.dnsprovider import (
    FALLBACK_TTL,
    MIN_DNS_TTL,
    RecordSet,
    RecordType,
    coerce_ttl,
    find_record_set,
    record_sets_equivalent,
)
from federated_ingress_dns.providers.inmemory import InMemoryDNSProvider


def a_record(name: str, *addresses: str, ttl: int = MIN_DNS_TTL) -> RecordSet:
    return RecordSet(name=name, type=RecordType.A, ttl=ttl, rrdatas=tuple(addresses))


class TestCoerceTTL:
    """Tests for TTL coercion."""

    def test_valid_ttl_is_kept(self) -> None:
        assert coerce_ttl(300) == 300
        assert coerce_ttl("180") == 180

    def test_negative_ttl_uses_fallback(self) -> None:
        assert coerce_ttl(-5) == FALLBACK_TTL

    def test_garbage_ttl_uses_fallback(self) -> None:
        assert coerce_ttl("soon") == FALLBACK_TTL
        assert coerce_ttl(None) == FALLBACK_TTL


class TestEquivalence:
    """Tests for record set equivalence."""

    def test_data_order_is_ignored(self) -> None:
        a = a_record("www.example.com", "10.0.0.1", "10.0.0.2")
        b = a_record("www.example.com", "10.0.0.2", "10.0.0.1")
        assert record_sets_equivalent(a, b)

    def test_trailing_dot_and_case_are_ignored(self) -> None:
        assert record_sets_equivalent(
            a_record("WWW.example.com.", "10.0.0.1"), a_record("www.example.com", "10.0.0.1")
        )

    def test_ttl_difference_is_not_equivalent(self) -> None:
        assert not record_sets_equivalent(
            a_record("www.example.com", "10.0.0.1", ttl=60),
            a_record("www.example.com", "10.0.0.1"),
        )

    def test_type_difference_is_not_equivalent(self) -> None:
        cname = RecordSet("www.example.com", RecordType.CNAME, MIN_DNS_TTL, ("10.0.0.1",))
        assert not record_sets_equivalent(cname, a_record("www.example.com", "10.0.0.1"))

    def test_find_record_set_skips_different_lengths(self) -> None:
        wanted = a_record("www.example.com", "10.0.0.1")
        candidates = [a_record("www.example.com", "10.0.0.1", "10.0.0.1"), wanted]
        assert find_record_set(candidates, wanted) is wanted

    def test_find_record_set_returns_none_without_match(self) -> None:
        wanted = a_record("www.example.com", "10.0.0.1")
        assert find_record_set([a_record("www.example.com", "10.0.0.9")], wanted) is None


class TestRecordSetsNewAndChangeset:
    """Tests for the shared RecordSets.new and Changeset behavior."""

    def test_new_builds_value_without_side_effect(self) -> None:
        provider = InMemoryDNSProvider(zones=["example.com"])
        rrsets = provider.zones().list()[0].record_sets()

        rrset = rrsets.new("www.example.com", ["10.0.0.1"], -1, RecordType.A)

        assert rrset == RecordSet("www.example.com", RecordType.A, FALLBACK_TTL, ("10.0.0.1",))
        assert rrsets.list() == []

    def test_changeset_chains_and_reports_empty(self) -> None:
        provider = InMemoryDNSProvider(zones=["example.com"])
        rrsets = provider.zones().list()[0].record_sets()
        changeset = rrsets.start_changeset()
        assert changeset.is_empty()

        record = a_record("www.example.com", "10.0.0.1")
        assert changeset.add(record).remove(record) is changeset
        assert not changeset.is_empty()
