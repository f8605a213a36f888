"""Tests for tax type registration and order dispatch."""

from datetime import date
from decimal import Decimal

import pytest

from order_tax.adjustments import Adjustment, AdjustmentType
from order_tax.exceptions import RuleLookupFailed
from order_tax.jurisdiction import Jurisdiction, TerritoryMatcher
from order_tax.money import Money, RoundingMode
from order_tax.orders import CustomerProfile, LineItem, Order, Store
from order_tax.rates import TaxRate, TaxRuleSnapshot, TaxZone
from order_tax.registry import TaxTypeRegistry
from order_tax.tax_types import (
    CustomTaxType,
    EuropeanUnionVat,
    TaxTypeConfiguration,
    UsSalesTax,
)

AS_OF = date(2024, 6, 15)


def usd(amount: str) -> Money:
    return Money(Decimal(amount), "USD")


def _order(customer: str = "NL", store: str = "NL", order_id: str = "A-1") -> Order:
    item = LineItem(1, usd("100"), title="Widget").add_adjustment(
        Adjustment(AdjustmentType.PROMOTION, "Discount", usd("-40"))
    )
    return Order(
        store=Store("My store", Jurisdiction.parse(store)),
        customer_profile=CustomerProfile(Jurisdiction.parse(customer)),
        currency="USD",
        line_items=(item,),
        order_id=order_id,
    )


@pytest.fixture
def snapshot() -> TaxRuleSnapshot:
    return TaxRuleSnapshot.default(AS_OF)


@pytest.fixture
def registry(snapshot) -> TaxTypeRegistry:
    registry = TaxTypeRegistry()
    registry.register_plugin(EuropeanUnionVat(snapshot))
    registry.register_plugin(UsSalesTax(snapshot))
    return registry


# ── Registration ─────────────────────────────────────────────────────


def test_registration_order_is_kept(registry: TaxTypeRegistry):
    assert registry.tax_type_ids == ["european_union_vat", "us_sales_tax"]
    assert len(registry) == 2
    assert "us_sales_tax" in registry


def test_duplicate_registration_rejected(registry: TaxTypeRegistry, snapshot):
    with pytest.raises(ValueError, match="already registered"):
        registry.register_plugin(EuropeanUnionVat(snapshot))
    with pytest.raises(ValueError):
        registry.register("us_sales_tax", lambda o: True, lambda o: o)


def test_get_unknown_raises(registry: TaxTypeRegistry):
    with pytest.raises(KeyError):
        registry.get("swiss_vat")


def test_register_plain_functions():
    calls = []

    def applies(order):
        calls.append("applies")
        return order.customer_profile.address.country_code == "NL"

    def apply(order):
        calls.append("apply")
        return order.add_adjustment(
            Adjustment(AdjustmentType.FEE, "Handling", usd("1.00"))
        )

    registry = TaxTypeRegistry()
    registry.register("handling", applies, apply)

    assert registry.process(_order()).total() == usd("61.00")
    assert registry.process(_order(customer="DE")).total() == usd("60.00")
    assert calls == ["applies", "apply", "applies"]


def test_output_of_one_tax_type_feeds_the_next():
    seen = []
    registry = TaxTypeRegistry()
    registry.register(
        "first",
        lambda o: True,
        lambda o: o.add_adjustment(Adjustment(AdjustmentType.FEE, "Fee", usd("2"))),
    )
    registry.register(
        "second", lambda o: seen.append(len(o.adjustments)) or False, lambda o: o
    )
    registry.process(_order())
    assert seen == [1]


# ── from_config ──────────────────────────────────────────────────────


def test_from_config(snapshot):
    registry = TaxTypeRegistry.from_config(
        {
            "us_sales_tax": {"plugin": "us_sales_tax"},
            "eu": {
                "plugin": "european_union_vat",
                "label": "VAT",
                "configuration": {"display_inclusive": True},
            },
        },
        snapshot.with_zones("eu", snapshot.zones_for("european_union_vat")),
    )
    assert registry.tax_type_ids == ["us_sales_tax", "eu"]
    plugin = registry.get("eu").plugin
    assert isinstance(plugin, EuropeanUnionVat)
    assert plugin.label == "VAT"
    assert plugin.configuration.display_inclusive is True


def test_from_config_custom_plugin(snapshot):
    zone = TaxZone(
        "ch",
        "Switzerland",
        (TerritoryMatcher("CH"),),
        (TaxRate("standard", Decimal("0.081"), date(2024, 1, 1)),),
        display_label="MWST",
    )
    registry = TaxTypeRegistry.from_config(
        {"swiss_vat": {"plugin": "custom"}}, snapshot.with_zones("swiss_vat", (zone,))
    )
    assert isinstance(registry.get("swiss_vat").plugin, CustomTaxType)
    taxed = registry.process(_order(customer="CH", store="CH"))
    assert taxed.tax_total() == usd("4.86")


def test_from_config_unknown_plugin(snapshot):
    with pytest.raises(ValueError, match="Unknown tax type plugin"):
        TaxTypeRegistry.from_config({"x": {"plugin": "nope"}}, snapshot)


# ── Dispatch ─────────────────────────────────────────────────────────


def test_process_applies_matching_tax_types(registry: TaxTypeRegistry):
    taxed = registry.process(_order())
    taxes = [a for a in taxed.collect_adjustments() if a.is_tax]
    assert [a.label for a in taxes] == ["VAT"]
    assert taxed.total() == usd("72.60")


def test_process_order_outside_every_zone(registry: TaxTypeRegistry):
    order = _order(customer="JP", store="JP")
    assert registry.process(order) == order


def test_process_propagates_rule_lookup_failure(snapshot):
    registry = TaxTypeRegistry()
    registry.register_plugin(CustomTaxType(snapshot, tax_type_id="missing"))
    with pytest.raises(RuleLookupFailed):
        registry.process(_order())


def test_process_batch_reports_failures(registry: TaxTypeRegistry):
    def broken_apply(order):
        raise RuleLookupFailed("No active rate for zone broken")

    registry.register(
        "broken",
        lambda o: o.order_id == "BAD",
        broken_apply,
    )
    orders = [_order(order_id="A-1"), _order(order_id="BAD"), _order(order_id="A-3")]

    batch = registry.process_batch(orders)

    assert batch.order_count == 3
    assert batch.failed_count == 1
    assert [r.succeeded for r in batch.results] == [True, False, True]
    assert batch.results[1].order is orders[1]
    assert "Order BAD" in batch.errors[0]
    assert batch.results[0].applied == ["european_union_vat"]
    assert batch.results[0].total == usd("72.60")
    assert batch.tax_by_currency == {"USD": Decimal("25.20")}


def test_process_batch_untaxed_unlisted_currency_succeeds(registry: TaxTypeRegistry):
    item = LineItem(2, Money(Decimal("499.995"), "INR"), title="Kurta")
    order = Order(
        store=Store("My store", Jurisdiction("NL")),
        customer_profile=CustomerProfile(Jurisdiction("NL")),
        currency="INR",
        line_items=(item,),
        order_id="IN-1",
    )

    batch = registry.process_batch([order])

    assert batch.failed_count == 0
    assert batch.results[0].applied == []
    assert batch.results[0].total == Money(Decimal("999.99"), "INR")


# ── Rounding mode ────────────────────────────────────────────────────


def _zero_rate_tax_type(snapshot, mode: RoundingMode) -> CustomTaxType:
    zone = TaxZone(
        "nl_zero",
        "Netherlands",
        (TerritoryMatcher("NL"),),
        (TaxRate("zero", Decimal("0"), date(2000, 1, 1)),),
    )
    return CustomTaxType(
        snapshot,
        TaxTypeConfiguration(rounding_mode=mode),
        tax_type_id="zero",
        zones=(zone,),
    )


def test_order_total_uses_registry_rounding_mode(snapshot):
    registry = TaxTypeRegistry(RoundingMode.HALF_EVEN)
    registry.register_plugin(_zero_rate_tax_type(snapshot, RoundingMode.HALF_EVEN))
    order = Order(
        store=Store("My store", Jurisdiction("NL")),
        customer_profile=CustomerProfile(Jurisdiction("NL")),
        currency="USD",
        line_items=(LineItem(1, usd("0.105")),),
    )

    batch = registry.process_batch([order])

    assert batch.results[0].applied == ["zero"]
    assert batch.results[0].total == usd("0.10")


def test_plugin_with_other_rounding_mode_rejected(snapshot):
    registry = TaxTypeRegistry(RoundingMode.HALF_UP)
    with pytest.raises(ValueError, match="half_even"):
        registry.register_plugin(_zero_rate_tax_type(snapshot, RoundingMode.HALF_EVEN))


def test_from_config_rounding_mode(snapshot):
    registry = TaxTypeRegistry.from_config(
        {"us_sales_tax": {"plugin": "us_sales_tax"}},
        snapshot,
        rounding_mode=RoundingMode.HALF_EVEN,
    )
    assert registry.rounding_mode is RoundingMode.HALF_EVEN
    plugin = registry.get("us_sales_tax").plugin
    assert plugin.configuration.rounding_mode is RoundingMode.HALF_EVEN

    with pytest.raises(ValueError):
        TaxTypeRegistry.from_config(
            {"us_sales_tax": {"configuration": {"rounding_mode": "down"}}},
            snapshot,
            rounding_mode=RoundingMode.HALF_EVEN,
        )
