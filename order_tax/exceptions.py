"""
Error taxonomy for the order tax engine.

CurrencyMismatch and InvalidQuantity are programming errors on the
caller's side. AmbiguousJurisdiction is recovered by tax types and never
reaches the caller. RuleLookupFailed fails the computation for an order.
"""

from __future__ import annotations

from typing import Sequence


class TaxEngineError(Exception):
    """Base class for all engine errors."""


class CurrencyMismatch(TaxEngineError):
    """Two monetary operands carry different currency codes."""

    def __init__(self, left: str, right: str) -> None:
        super().__init__(f"Currency mismatch: {left} vs {right}")
        self.left = left
        self.right = right


class UnsupportedCurrency(TaxEngineError):
    def __init__(self, currency: str) -> None:
        super().__init__(f"Unsupported currency code: {currency}")
        self.currency = currency


class InvalidQuantity(TaxEngineError, ValueError):
    """Line item quantity is not a positive integer."""

    def __init__(self, quantity: object) -> None:
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")
        self.quantity = quantity


class AmbiguousJurisdiction(TaxEngineError):
    """More than one zone of the same family matched with equal specificity."""

    def __init__(self, family: str, zone_ids: Sequence[str]) -> None:
        super().__init__(
            f"Ambiguous jurisdiction in zone family {family!r}: "
            f"{', '.join(zone_ids)}"
        )
        self.family = family
        self.zone_ids = tuple(zone_ids)


class RuleLookupFailed(TaxEngineError):
    """The rule snapshot lacks zone or rate data needed for a computation."""
