"""
Tax type registration and the per-order dispatch loop.

Registrations run in the order they were made. For each one, ``applies``
is asked first and ``apply`` only runs when it answers yes; the order
returned by one tax type is the input of the next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Optional

from order_tax.exceptions import TaxEngineError
from order_tax.money import Money, RoundingMode
from order_tax.orders import Order
from order_tax.rates import TaxRuleSnapshot
from order_tax.tax_types import PLUGIN_CLASSES, TaxType, TaxTypeConfiguration

logger = logging.getLogger(__name__)

AppliesFn = Callable[[Order], bool]
ApplyFn = Callable[[Order], Order]


@dataclass(frozen=True)
class Registration:
    tax_type_id: str
    applies: AppliesFn
    apply: ApplyFn
    plugin: Optional[TaxType] = None


@dataclass
class OrderResult:
    """Outcome of processing one order."""

    order: Order
    applied: list[str] = field(default_factory=list)
    total: Optional[Money] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Aggregated result for a batch of orders."""

    results: list[OrderResult]
    order_count: int
    failed_count: int
    tax_by_currency: dict[str, Decimal]
    errors: list[str]


class TaxTypeRegistry:
    """
    Ordered set of active tax types, built once per deployment.

    The registry's rounding mode rounds order totals; every plugin must
    round tax with the same mode, so one run never mixes modes.
    """

    def __init__(self, rounding_mode: RoundingMode = RoundingMode.HALF_UP) -> None:
        self.rounding_mode = rounding_mode
        self._registrations: list[Registration] = []

    def register(
        self,
        tax_type_id: str,
        applies_fn: AppliesFn,
        apply_fn: ApplyFn,
    ) -> None:
        if tax_type_id in self:
            raise ValueError(f"Tax type already registered: {tax_type_id}")
        self._registrations.append(Registration(tax_type_id, applies_fn, apply_fn))

    def register_plugin(self, plugin: TaxType) -> None:
        if plugin.tax_type_id in self:
            raise ValueError(f"Tax type already registered: {plugin.tax_type_id}")
        mode = plugin.configuration.rounding_mode
        if mode is not self.rounding_mode:
            raise ValueError(
                f"Tax type {plugin.tax_type_id} rounds {mode.value}, "
                f"registry rounds {self.rounding_mode.value}"
            )
        self._registrations.append(
            Registration(plugin.tax_type_id, plugin.applies, plugin.apply, plugin)
        )

    @classmethod
    def from_config(
        cls,
        config: dict[str, dict],
        snapshot: TaxRuleSnapshot,
        rounding_mode: RoundingMode = RoundingMode.HALF_UP,
    ) -> "TaxTypeRegistry":
        """
        Build a registry from ``{tax_type_id: {"plugin": ..., ...}}``.

        Entries are registered in mapping order. Each entry may carry a
        ``label`` and a ``configuration`` dict for TaxTypeConfiguration.
        ``rounding_mode`` is the default for entries that do not set one;
        an entry that sets a different mode is rejected.
        """
        registry = cls(rounding_mode)
        for tax_type_id, entry in config.items():
            configuration = {"rounding_mode": rounding_mode.value}
            configuration.update(entry.get("configuration", {}))
            plugin_name = entry.get("plugin", tax_type_id)
            try:
                plugin_cls = PLUGIN_CLASSES[plugin_name]
            except KeyError:
                raise ValueError(f"Unknown tax type plugin: {plugin_name}") from None
            plugin = plugin_cls(
                snapshot,
                TaxTypeConfiguration.from_dict(configuration),
                tax_type_id=tax_type_id,
                label=entry.get("label"),
            )
            registry.register_plugin(plugin)
        return registry

    @property
    def tax_type_ids(self) -> list[str]:
        return [r.tax_type_id for r in self._registrations]

    def get(self, tax_type_id: str) -> Registration:
        for registration in self._registrations:
            if registration.tax_type_id == tax_type_id:
                return registration
        raise KeyError(tax_type_id)

    def __contains__(self, tax_type_id: object) -> bool:
        return any(r.tax_type_id == tax_type_id for r in self._registrations)

    def __len__(self) -> int:
        return len(self._registrations)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def process(self, order: Order) -> Order:
        """
        Run every registered tax type against ``order``.

        Raises the first TaxEngineError; the input order is never
        modified.
        """
        return self._process(order)[0]

    def _process(self, order: Order) -> tuple[Order, list[str]]:
        applied: list[str] = []
        for registration in self._registrations:
            if registration.applies(order):
                order = registration.apply(order)
                applied.append(registration.tax_type_id)
        return order, applied

    def process_batch(self, orders: list[Order]) -> BatchResult:
        """
        Process many orders; a failing order is reported, not fatal.

        Failed orders come back unmodified with the error message.
        """
        results: list[OrderResult] = []
        errors: list[str] = []
        tax_totals: dict[str, Decimal] = {}

        for index, order in enumerate(orders):
            label = order.order_id or f"#{index + 1}"
            try:
                processed, applied = self._process(order)
                tax = processed.tax_total()
                total = processed.total(self.rounding_mode)
            except TaxEngineError as e:
                logger.error("Tax computation failed for order %s: %s", label, e)
                errors.append(f"Order {label}: {e}")
                results.append(OrderResult(order=order, error=str(e)))
                continue

            results.append(OrderResult(order=processed, applied=applied, total=total))
            tax_totals[processed.currency] = (
                tax_totals.get(processed.currency, Decimal("0")) + tax.amount
            )

        return BatchResult(
            results=results,
            order_count=len(orders),
            failed_count=len(errors),
            tax_by_currency=tax_totals,
            errors=errors,
        )
