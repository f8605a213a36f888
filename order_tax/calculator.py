"""
Tax rule engine: turns a taxable base and a rate into a tax adjustment.

Handles:
- Tax-exclusive pricing (tax added on top of the base)
- Tax-inclusive pricing (tax split out of the base)
- Currency-aware rounding with a fixed mode per engine
- Skipping zero and negative bases
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from order_tax.adjustments import Adjustment, AdjustmentType
from order_tax.money import Money, RoundingMode
from order_tax.rates import TaxRate, TaxZone

logger = logging.getLogger(__name__)


class PricingModel(Enum):
    TAX_EXCLUSIVE = "exclusive"  # tax added on top of price
    TAX_INCLUSIVE = "inclusive"  # tax already embedded in price

    @classmethod
    def for_store(cls, prices_include_tax: bool) -> "PricingModel":
        return cls.TAX_INCLUSIVE if prices_include_tax else cls.TAX_EXCLUSIVE


@dataclass(frozen=True)
class TaxCalculation:
    """Result of taxing one base at one rate."""

    base: Money
    net: Money
    tax_amount: Money
    percentage: Decimal
    pricing_model: PricingModel

    @property
    def included(self) -> bool:
        return self.pricing_model is PricingModel.TAX_INCLUSIVE

    @property
    def gross(self) -> Money:
        return self.net.add(self.tax_amount)


def source_id(tax_type_id: str, zone: TaxZone, rate: TaxRate) -> str:
    return f"{tax_type_id}|{zone.zone_id}|{rate.rate_id}"


class TaxRuleEngine:
    """
    Computes tax on a taxable base.

    Rounding happens once per calculation, with the engine's mode.
    """

    def __init__(self, rounding_mode: RoundingMode = RoundingMode.HALF_UP) -> None:
        self.rounding_mode = rounding_mode

    def calculate(
        self,
        base: Money,
        percentage: Decimal,
        prices_include_tax: bool = False,
    ) -> Optional[TaxCalculation]:
        """
        Tax ``base`` at ``percentage``.

        Exclusive: tax = round(base * rate).
        Inclusive: net = round(base / (1 + rate)), tax = base - net, so
        net + tax always equals the original base.

        Returns None for a base of zero or less.
        """
        if not base.is_positive():
            logger.debug("Skipping non-positive taxable base %s", base)
            return None

        model = PricingModel.for_store(prices_include_tax)
        if model is PricingModel.TAX_INCLUSIVE:
            net = base.divide(Decimal(1) + percentage).round(self.rounding_mode)
            tax_amount = base.subtract(net)
        else:
            net = base
            tax_amount = base.multiply(percentage).round(self.rounding_mode)

        return TaxCalculation(
            base=base,
            net=net,
            tax_amount=tax_amount,
            percentage=percentage,
            pricing_model=model,
        )

    def build_adjustment(
        self,
        calculation: TaxCalculation,
        zone: TaxZone,
        rate: TaxRate,
        tax_type_id: str,
    ) -> Adjustment:
        return Adjustment(
            type=AdjustmentType.TAX,
            label=zone.display_label,
            amount=calculation.tax_amount,
            included=calculation.included,
            source_id=source_id(tax_type_id, zone, rate),
            percentage=calculation.percentage,
        )
