"""Tests for jurisdiction resolution."""

from datetime import date
from decimal import Decimal

import pytest

from order_tax.exceptions import AmbiguousJurisdiction
from order_tax.jurisdiction import Jurisdiction, TerritoryMatcher
from order_tax.orders import CustomerProfile, Store
from order_tax.rates import TaxRate, TaxRuleSnapshot, TaxZone
from order_tax.resolver import JurisdictionResolver, Sourcing, select_most_specific


def _zone(zone_id: str, territory: str, family: str, pct: str = "0.05") -> TaxZone:
    return TaxZone(
        zone_id=zone_id,
        label=zone_id,
        territories=(TerritoryMatcher.parse(territory),),
        rates=(TaxRate("std", Decimal(pct), date(2000, 1, 1)),),
        family=family,
    )


def _store(address: str, *registrations: str) -> Store:
    return Store(
        "Shop",
        Jurisdiction.parse(address),
        frozenset(Jurisdiction.parse(r) for r in registrations),
    )


def _customer(address: str) -> CustomerProfile:
    return CustomerProfile(Jurisdiction.parse(address))


@pytest.fixture
def canada_zones() -> list[TaxZone]:
    return [
        _zone("ca_gst", "CA", "ca_federal", "0.05"),
        _zone("ca_on_hst", "CA-ON", "ca_federal", "0.13"),
        _zone("ca_bc_pst", "CA-BC", "ca_provincial", "0.07"),
    ]


@pytest.fixture
def eu_resolver() -> JurisdictionResolver:
    zones = TaxRuleSnapshot.default(date(2024, 1, 1)).zones_for("european_union_vat")
    return JurisdictionResolver(zones, Sourcing.ORIGIN)


# ── Most-specific-first ──────────────────────────────────────────────


def test_subdivision_beats_country_in_same_family(canada_zones):
    resolver = JurisdictionResolver(canada_zones)
    zones = resolver.match_address(Jurisdiction("CA", "ON"))
    assert [z.zone_id for z in zones] == ["ca_on_hst"]


def test_families_resolve_independently(canada_zones):
    resolver = JurisdictionResolver(canada_zones)
    zones = resolver.match_address(Jurisdiction("CA", "BC"))
    assert sorted(z.zone_id for z in zones) == ["ca_bc_pst", "ca_gst"]


def test_equal_specificity_is_ambiguous():
    zones = [_zone("a", "US-CA", "us"), _zone("b", "US-CA", "us")]
    with pytest.raises(AmbiguousJurisdiction) as excinfo:
        select_most_specific((z, 2) for z in zones)
    assert excinfo.value.family == "us"
    assert excinfo.value.zone_ids == ("a", "b")


def test_no_match_is_empty(canada_zones):
    resolver = JurisdictionResolver(canada_zones)
    assert resolver.match_address(Jurisdiction("US", "NY")) == []


# ── Origin sourcing ──────────────────────────────────────────────────


def test_origin_uses_store_address(eu_resolver):
    zones = eu_resolver.resolve(_store("NL"), _customer("DE"))
    assert [z.zone_id for z in zones] == ["nl"]


def test_origin_falls_back_to_single_registration(eu_resolver):
    zones = eu_resolver.resolve(_store("US-NY", "DE"), _customer("FR"))
    assert [z.zone_id for z in zones] == ["de"]


def test_origin_multiple_registrations_are_ambiguous(eu_resolver):
    with pytest.raises(AmbiguousJurisdiction):
        eu_resolver.resolve(_store("US-NY", "DE", "FR"), _customer("FR"))


def test_origin_unregistered_store_outside_zones(eu_resolver):
    assert eu_resolver.resolve(_store("US-NY"), _customer("NL")) == []


# ── Destination sourcing ─────────────────────────────────────────────


@pytest.fixture
def us_resolver() -> JurisdictionResolver:
    zones = TaxRuleSnapshot.default(date(2024, 1, 1)).zones_for("us_sales_tax")
    return JurisdictionResolver(zones, Sourcing.DESTINATION)


def test_destination_uses_customer_state_when_registered(us_resolver):
    zones = us_resolver.resolve(_store("US-CA", "US-NY"), _customer("US-NY"))
    assert [z.zone_id for z in zones] == ["us_ny"]


def test_destination_store_address_counts_as_registration(us_resolver):
    zones = us_resolver.resolve(_store("US-TX"), _customer("US-TX"))
    assert [z.zone_id for z in zones] == ["us_tx"]


def test_destination_requires_registration(us_resolver):
    assert us_resolver.resolve(_store("US-CA"), _customer("US-NY")) == []


def test_country_level_registration_covers_subdivisions(canada_zones):
    resolver = JurisdictionResolver(canada_zones, Sourcing.DESTINATION)
    zones = resolver.resolve(_store("US-WA", "CA"), _customer("CA-ON"))
    assert [z.zone_id for z in zones] == ["ca_on_hst"]


def test_is_registered(us_resolver):
    ny = next(z for z in us_resolver.zones if z.zone_id == "us_ny")
    assert us_resolver.is_registered(_store("US-CA", "US-NY"), ny)
    assert not us_resolver.is_registered(_store("US-CA"), ny)


def test_country_level_store_address_is_not_a_registration(us_resolver):
    ny = next(z for z in us_resolver.zones if z.zone_id == "us_ny")
    assert not us_resolver.is_registered(_store("US"), ny)
    assert us_resolver.resolve(_store("US"), _customer("US-NY")) == []
    assert us_resolver.is_registered(_store("CA-ON", "US"), ny)
