"""
Orders, line items and the parties they are sold between.

All types are immutable values. Adding an adjustment or a line item
returns a new object, so a failed tax pass can never leave a half-adjusted
order behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Optional

from order_tax.adjustments import (
    Adjustment,
    AdjustmentLedger,
    both,
    non_tax,
    not_included,
    tax_only,
)
from order_tax.exceptions import CurrencyMismatch, InvalidQuantity
from order_tax.jurisdiction import Jurisdiction
from order_tax.money import Money, RoundingMode, sum_money


class TaxableType(Enum):
    PHYSICAL_GOODS = "physical_goods"
    DIGITAL_GOODS = "digital_goods"
    SERVICES = "services"
    OTHER = "other"


@dataclass(frozen=True)
class Store:
    """The selling party: where it is located and where it collects tax."""

    name: str
    address: Jurisdiction
    registrations: frozenset[Jurisdiction] = field(default_factory=frozenset)
    prices_include_tax: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "registrations", frozenset(self.registrations))

    @property
    def tax_jurisdictions(self) -> tuple[Jurisdiction, ...]:
        """The store address followed by its explicit registrations."""
        extra = sorted(
            (j for j in self.registrations if j != self.address),
            key=lambda j: j.code,
        )
        return (self.address, *extra)

    @classmethod
    def from_dict(cls, data: dict) -> "Store":
        return cls(
            name=str(data.get("name", "")),
            address=Jurisdiction.parse(data["address"]),
            registrations=frozenset(
                Jurisdiction.parse(code) for code in data.get("registrations", [])
            ),
            prices_include_tax=bool(data.get("prices_include_tax", False)),
        )


@dataclass(frozen=True)
class CustomerProfile:
    address: Jurisdiction
    profile_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CustomerProfile":
        return cls(
            address=Jurisdiction.parse(data["address"]),
            profile_id=data.get("profile_id"),
        )


@dataclass(frozen=True)
class LineItem:
    """A quantity of one purchasable at a unit price, with its own ledger."""

    quantity: int
    unit_price: Money
    adjustments: AdjustmentLedger = field(default_factory=AdjustmentLedger)
    line_item_id: str = ""
    title: str = ""
    taxable: bool = True
    taxable_type: Optional[TaxableType] = None

    def __post_init__(self) -> None:
        if (
            isinstance(self.quantity, bool)
            or not isinstance(self.quantity, int)
            or self.quantity < 1
        ):
            raise InvalidQuantity(self.quantity)
        if not isinstance(self.adjustments, AdjustmentLedger):
            object.__setattr__(
                self, "adjustments", AdjustmentLedger(tuple(self.adjustments))
            )

    @property
    def currency(self) -> str:
        return self.unit_price.currency

    def base_price(self) -> Money:
        return self.unit_price.multiply(self.quantity)

    def adjusted_base(self) -> Money:
        """
        Taxable base: unit price times quantity plus every non-tax,
        non-included adjustment (discounts are negative).
        """
        return self.base_price().add(
            self.adjustments.net(both(non_tax, not_included), self.currency)
        )

    def tax_total(self) -> Money:
        return self.adjustments.net(both(tax_only, not_included), self.currency)

    def total(self) -> Money:
        return self.adjusted_base().add(self.tax_total())

    def display_unit_price(self) -> Money:
        """Unit price with non-included tax folded in, for inclusive display."""
        return self.unit_price.add(self.tax_total().divide(self.quantity))

    def add_adjustment(self, adjustment: Adjustment) -> "LineItem":
        return replace(self, adjustments=self.adjustments.add(adjustment))

    @classmethod
    def from_dict(cls, data: dict, currency: Optional[str] = None) -> "LineItem":
        unit_price = data["unit_price"]
        if not isinstance(unit_price, dict):
            unit_price = {"amount": unit_price, "currency": currency}
        taxable_type = data.get("taxable_type")
        return cls(
            quantity=int(data.get("quantity", 1)),
            unit_price=Money.from_dict(unit_price),
            adjustments=AdjustmentLedger(
                tuple(Adjustment.from_dict(a) for a in data.get("adjustments", []))
            ),
            line_item_id=str(data.get("line_item_id", "")),
            title=str(data.get("title", "")),
            taxable=bool(data.get("taxable", True)),
            taxable_type=TaxableType(taxable_type) if taxable_type else None,
        )


@dataclass(frozen=True)
class Order:
    """Line items sold by a store to a customer, in one declared currency."""

    store: Store
    customer_profile: CustomerProfile
    currency: str
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)
    adjustments: AdjustmentLedger = field(default_factory=AdjustmentLedger)
    order_id: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", self.currency.strip().upper())
        object.__setattr__(self, "line_items", tuple(self.line_items))
        if not isinstance(self.adjustments, AdjustmentLedger):
            object.__setattr__(
                self, "adjustments", AdjustmentLedger(tuple(self.adjustments))
            )

    def _check_currency(self, item: LineItem) -> None:
        if item.currency != self.currency:
            raise CurrencyMismatch(self.currency, item.currency)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def with_line_item(self, item: LineItem) -> "Order":
        return replace(self, line_items=self.line_items + (item,))

    def with_line_items(self, items: Iterable[LineItem]) -> "Order":
        """Replace all line items, keeping everything else."""
        return replace(self, line_items=tuple(items))

    def add_adjustment(self, adjustment: Adjustment) -> "Order":
        return replace(self, adjustments=self.adjustments.add(adjustment))

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def subtotal(self) -> Money:
        """Sum of unit price times quantity, before any adjustment."""
        total = Money.zero(self.currency)
        for item in self.line_items:
            self._check_currency(item)
            total = total.add(item.base_price())
        return total

    def collect_adjustments(self) -> tuple[Adjustment, ...]:
        """All line item adjustments in item order, then the order's own."""
        collected: list[Adjustment] = []
        for item in self.line_items:
            collected.extend(item.adjustments.all())
        collected.extend(self.adjustments.all())
        return tuple(collected)

    def tax_total(self) -> Money:
        """Tax added on top of prices (included tax is not counted)."""
        total = Money.zero(self.currency)
        for item in self.line_items:
            self._check_currency(item)
            total = total.add(item.tax_total())
        return total.add(self.adjustments.net(both(tax_only, not_included), self.currency))

    def total(self, rounding_mode: RoundingMode = RoundingMode.HALF_UP) -> Money:
        """
        Line item totals plus non-included order adjustments.

        Rounded once, after aggregation.
        """
        line_totals = []
        for item in self.line_items:
            self._check_currency(item)
            line_totals.append(item.total())
        total = sum_money(line_totals, self.currency).add(
            self.adjustments.net(not_included, self.currency)
        )
        return total.round(rounding_mode)

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        currency = data["currency"]
        return cls(
            store=Store.from_dict(data["store"]),
            customer_profile=CustomerProfile.from_dict(data["customer_profile"]),
            currency=currency,
            line_items=tuple(
                LineItem.from_dict(li, currency) for li in data.get("line_items", [])
            ),
            adjustments=AdjustmentLedger(
                tuple(Adjustment.from_dict(a) for a in data.get("adjustments", []))
            ),
            order_id=str(data.get("order_id", "")),
        )
