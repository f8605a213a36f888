#!/usr/bin/env python3
"""
Quick Start Example
===================

Builds a one-line order with a discount, sold by a Dutch store to a Dutch
customer, runs the default tax types over it and prints the result.

Usage:
    python examples/quick_start.py
"""

from datetime import date
from decimal import Decimal

from order_tax.adjustments import Adjustment, AdjustmentType
from order_tax.jurisdiction import Jurisdiction
from order_tax.money import Money
from order_tax.orders import CustomerProfile, LineItem, Order, Store
from order_tax.rates import TaxRuleSnapshot
from order_tax.registry import TaxTypeRegistry
from order_tax.tax_types import EuropeanUnionVat, UsSalesTax


def main() -> None:
    # Rule data as it stood on the evaluation date
    snapshot = TaxRuleSnapshot.default(date.today())

    registry = TaxTypeRegistry()
    registry.register_plugin(EuropeanUnionVat(snapshot))
    registry.register_plugin(UsSalesTax(snapshot))

    # $100 widget with a $40 discount
    item = LineItem(
        quantity=1,
        unit_price=Money(Decimal("100.00"), "USD"),
        title="Widget",
    ).add_adjustment(
        Adjustment(
            type=AdjustmentType.PROMOTION,
            label="Discount",
            amount=Money(Decimal("-40.00"), "USD"),
        )
    )
    order = Order(
        store=Store("My store", Jurisdiction("NL")),
        customer_profile=CustomerProfile(Jurisdiction("NL")),
        currency="USD",
        line_items=(item,),
        order_id="ORD-001",
    )

    taxed = registry.process(order)

    print(f"Order:          {taxed.order_id}")
    print(f"Subtotal:       {taxed.subtotal().round()}")
    for adjustment in taxed.collect_adjustments():
        rate = f" ({adjustment.percentage:.2%})" if adjustment.percentage else ""
        print(f"{adjustment.label + ':':<15} {adjustment.amount.round()}{rate}")
    print(f"Tax:            {taxed.tax_total().round()}")
    print(f"Total:          {taxed.total()}")


if __name__ == "__main__":
    main()
