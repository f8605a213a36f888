"""
Order Tax Engine
================

Computes tax adjustments for multi-line orders: discount-before-tax
bases, tax-inclusive and tax-exclusive pricing, jurisdiction resolution
and currency-aware rounding.

Modules:
    money        - Currency-bound decimal amounts and rounding
    adjustments  - Adjustments and the append-only ledger
    orders       - Line items, orders, stores and customer profiles
    jurisdiction - Jurisdiction descriptors and territory matching
    rates        - Tax zones, dated rates and rule snapshots
    resolver     - Zone resolution by origin or destination
    calculator   - Tax rule engine
    tax_types    - EU VAT, US sales tax and custom tax type plugins
    registry     - Tax type registration and order dispatch
    cli          - Command-line interface
"""

__version__ = "1.0.0"

from order_tax.adjustments import Adjustment, AdjustmentLedger, AdjustmentType
from order_tax.calculator import TaxCalculation, TaxRuleEngine
from order_tax.exceptions import (
    AmbiguousJurisdiction,
    CurrencyMismatch,
    InvalidQuantity,
    RuleLookupFailed,
    TaxEngineError,
    UnsupportedCurrency,
)
from order_tax.jurisdiction import Jurisdiction, TerritoryMatcher
from order_tax.money import Money, RoundingMode
from order_tax.orders import CustomerProfile, LineItem, Order, Store, TaxableType
from order_tax.rates import TaxRate, TaxRuleSnapshot, TaxZone
from order_tax.registry import TaxTypeRegistry
from order_tax.resolver import JurisdictionResolver, Sourcing
from order_tax.tax_types import (
    CustomTaxType,
    EuropeanUnionVat,
    TaxType,
    TaxTypeConfiguration,
    UsSalesTax,
)

__all__ = [
    "Adjustment",
    "AdjustmentLedger",
    "AdjustmentType",
    "AmbiguousJurisdiction",
    "CurrencyMismatch",
    "CustomTaxType",
    "CustomerProfile",
    "EuropeanUnionVat",
    "InvalidQuantity",
    "Jurisdiction",
    "JurisdictionResolver",
    "LineItem",
    "Money",
    "Order",
    "RoundingMode",
    "RuleLookupFailed",
    "Sourcing",
    "Store",
    "TaxCalculation",
    "TaxEngineError",
    "TaxRate",
    "TaxRuleEngine",
    "TaxRuleSnapshot",
    "TaxType",
    "TaxTypeConfiguration",
    "TaxTypeRegistry",
    "TaxZone",
    "TaxableType",
    "TerritoryMatcher",
    "UnsupportedCurrency",
    "UsSalesTax",
]
