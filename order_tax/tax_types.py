"""
Tax type plugins.

Every tax type answers two questions about an order: does it apply, and
what tax adjustments does it add. ``apply`` never mutates its input; it
returns a new order, so a failure part-way through leaves the caller's
order exactly as it was.

Variants:
    LocalTaxType      - zone based, sourcing chosen by the subclass
    EuropeanUnionVat  - origin based, with the EU cross-border exceptions
    UsSalesTax        - destination based, store must be registered
    CustomTaxType     - zones and sourcing supplied by configuration
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from order_tax.adjustments import both, tax_only
from order_tax.calculator import TaxRuleEngine
from order_tax.exceptions import (
    AmbiguousJurisdiction,
    CurrencyMismatch,
    UnsupportedCurrency,
)
from order_tax.money import Money, RoundingMode, is_supported_currency
from order_tax.orders import LineItem, Order, TaxableType
from order_tax.rates import TaxRuleSnapshot, TaxZone
from order_tax.resolver import JurisdictionResolver, Sourcing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaxTypeConfiguration:
    """
    Per-plugin settings, fixed at construction.

    ``display_inclusive`` only changes how prices are presented; whether
    tax is added or split out is decided by the store's
    ``prices_include_tax``. ``taxable_type`` is used for line items that
    do not carry their own.
    """

    display_inclusive: bool = False
    rounding_mode: RoundingMode = RoundingMode.HALF_UP
    taxable_type: TaxableType = TaxableType.PHYSICAL_GOODS

    @classmethod
    def from_dict(cls, data: dict) -> "TaxTypeConfiguration":
        return cls(
            display_inclusive=bool(data.get("display_inclusive", False)),
            rounding_mode=RoundingMode(data.get("rounding_mode", "half_up")),
            taxable_type=TaxableType(data.get("taxable_type", "physical_goods")),
        )


class TaxType(ABC):
    """Base class of all tax type plugins."""

    plugin_id: str = ""
    default_label: str = ""

    def __init__(
        self,
        snapshot: TaxRuleSnapshot,
        configuration: Optional[TaxTypeConfiguration] = None,
        tax_type_id: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        self.snapshot = snapshot
        self.configuration = configuration or TaxTypeConfiguration()
        self.tax_type_id = tax_type_id or self.plugin_id
        self.label = label or self.default_label or self.tax_type_id
        self.engine = TaxRuleEngine(self.configuration.rounding_mode)

    @abstractmethod
    def applies(self, order: Order) -> bool:
        """Whether this tax type should be applied to ``order``."""

    @abstractmethod
    def apply(self, order: Order) -> Order:
        """Return a copy of ``order`` with this tax type's adjustments added."""

    def get_taxable_type(self, item: LineItem) -> TaxableType:
        return item.taxable_type or self.configuration.taxable_type

    def display_unit_price(self, item: LineItem) -> Money:
        """Unit price as shown to the customer under ``display_inclusive``."""
        if self.configuration.display_inclusive:
            return item.display_unit_price()
        included_tax = item.adjustments.net(
            both(tax_only, lambda a: a.included), item.currency
        )
        return item.unit_price.subtract(included_tax.divide(item.quantity))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(tax_type_id={self.tax_type_id!r})"


class LocalTaxType(TaxType):
    """A tax type backed by zones from the rule snapshot."""

    sourcing: Sourcing = Sourcing.DESTINATION

    def zones(self) -> tuple[TaxZone, ...]:
        return self.snapshot.zones_for(self.tax_type_id)

    def build_resolver(self) -> JurisdictionResolver:
        return JurisdictionResolver(self.zones(), self.sourcing)

    def resolve_zones(
        self, order: Order, item: LineItem, resolver: JurisdictionResolver
    ) -> list[TaxZone]:
        return resolver.resolve(order.store, order.customer_profile)

    def applies(self, order: Order) -> bool:
        if not is_supported_currency(order.currency):
            logger.debug(
                "%s: currency %s not supported", self.tax_type_id, order.currency
            )
            return False

        resolver = self.build_resolver()
        found = False
        for item in order.line_items:
            if not item.taxable:
                continue
            try:
                zones = self.resolve_zones(order, item, resolver)
            except AmbiguousJurisdiction as e:
                logger.warning(
                    "%s does not apply to order %s: %s",
                    self.tax_type_id,
                    order.order_id or "<unsaved>",
                    e,
                )
                return False
            if zones:
                found = True
        return found

    def apply(self, order: Order) -> Order:
        """
        Add one tax adjustment per taxable line item and resolved zone.

        The base is the line item's adjusted base, so discounts are netted
        in before tax. Line items whose base is zero or negative get no
        adjustment. Raises RuleLookupFailed when a resolved zone has no
        active rate, and UnsupportedCurrency for an order currency this
        tax type cannot price in; the caller's order is untouched.
        """
        if not is_supported_currency(order.currency):
            raise UnsupportedCurrency(order.currency)
        resolver = self.build_resolver()
        prices_include_tax = order.store.prices_include_tax
        as_of = self.snapshot.as_of
        items: list[LineItem] = []
        added = 0

        for item in order.line_items:
            if not item.taxable:
                items.append(item)
                continue
            if item.currency != order.currency:
                raise CurrencyMismatch(order.currency, item.currency)

            try:
                zones = self.resolve_zones(order, item, resolver)
            except AmbiguousJurisdiction as e:
                logger.warning(
                    "Skipping %s for order %s: %s",
                    self.tax_type_id,
                    order.order_id or "<unsaved>",
                    e,
                )
                return order

            base = item.adjusted_base()
            for zone in zones:
                rate = zone.active_rate(as_of)
                calculation = self.engine.calculate(
                    base, rate.percentage, prices_include_tax
                )
                if calculation is None:
                    logger.debug(
                        "%s: no tax on line item %s, base %s",
                        self.tax_type_id,
                        item.line_item_id or item.title,
                        base,
                    )
                    continue
                item = item.add_adjustment(
                    self.engine.build_adjustment(
                        calculation, zone, rate, self.tax_type_id
                    )
                )
                added += 1
            items.append(item)

        logger.debug(
            "%s added %d tax adjustment(s) to order %s",
            self.tax_type_id,
            added,
            order.order_id or "<unsaved>",
        )
        return order.with_line_items(items)


# Digital goods sold cross-border are taxed where the customer is
_EU_DIGITAL_GOODS_RULE_START = date(2015, 1, 1)


class EuropeanUnionVat(LocalTaxType):
    """
    EU VAT, origin based.

    The store's country sets the rate, with three exceptions: customers
    outside the EU pay no EU VAT; digital goods sold to another EU
    country use the customer's rate; a store registered in the customer's
    country charges that country's rate, wherever the store is located.
    """

    plugin_id = "european_union_vat"
    default_label = "EU VAT"
    sourcing = Sourcing.ORIGIN

    def resolve_zones(
        self, order: Order, item: LineItem, resolver: JurisdictionResolver
    ) -> list[TaxZone]:
        customer_address = order.customer_profile.address
        store = order.store

        customer_zones = resolver.match_address(customer_address)
        if not customer_zones:
            return []

        cross_border = customer_address.country_code != store.address.country_code
        if (
            cross_border
            and self.get_taxable_type(item) is TaxableType.DIGITAL_GOODS
            and self.snapshot.as_of >= _EU_DIGITAL_GOODS_RULE_START
        ):
            return customer_zones

        # A store registered in the customer's country charges its rate
        registered = [z for z in customer_zones if resolver.is_registered(store, z)]
        if registered:
            return registered

        return resolver.match_address(store.address)


class UsSalesTax(LocalTaxType):
    """US sales tax, destination based: the customer's state rate, if the
    store collects in that state."""

    plugin_id = "us_sales_tax"
    default_label = "US Sales Tax"
    sourcing = Sourcing.DESTINATION


class CustomTaxType(LocalTaxType):
    """Zone based tax type whose zones and sourcing come from configuration."""

    plugin_id = "custom"
    default_label = "Custom tax"

    def __init__(
        self,
        snapshot: TaxRuleSnapshot,
        configuration: Optional[TaxTypeConfiguration] = None,
        tax_type_id: Optional[str] = None,
        label: Optional[str] = None,
        zones: Optional[Sequence[TaxZone]] = None,
        sourcing: Sourcing = Sourcing.DESTINATION,
    ) -> None:
        super().__init__(snapshot, configuration, tax_type_id, label)
        self._zones = tuple(zones) if zones is not None else None
        self.sourcing = sourcing

    def zones(self) -> tuple[TaxZone, ...]:
        if self._zones is not None:
            return self._zones
        return super().zones()


PLUGIN_CLASSES: dict[str, type[LocalTaxType]] = {
    EuropeanUnionVat.plugin_id: EuropeanUnionVat,
    UsSalesTax.plugin_id: UsSalesTax,
    CustomTaxType.plugin_id: CustomTaxType,
}
