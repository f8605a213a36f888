"""
Price adjustments and the append-only ledger that holds them.

A ledger is attached to every line item and to the order itself. It is an
immutable value: ``add`` returns a new ledger, existing entries never
change.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterator, Optional

from order_tax.money import Money, sum_money


class AdjustmentType(Enum):
    TAX = "tax"
    PROMOTION = "promotion"
    SHIPPING = "shipping"
    FEE = "fee"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Adjustment:
    """A signed modification of a price (discount, fee, tax, ...)."""

    type: AdjustmentType
    label: str
    amount: Money
    locked: bool = False
    included: bool = False  # amount already contained in the unit price
    source_id: Optional[str] = None
    percentage: Optional[Decimal] = None

    @property
    def is_tax(self) -> bool:
        return self.type is AdjustmentType.TAX

    @property
    def currency(self) -> str:
        return self.amount.currency

    @classmethod
    def from_dict(cls, data: dict) -> "Adjustment":
        percentage = data.get("percentage")
        return cls(
            type=AdjustmentType(data["type"]),
            label=str(data.get("label", "")),
            amount=Money.from_dict(data["amount"]),
            locked=bool(data.get("locked", False)),
            included=bool(data.get("included", False)),
            source_id=data.get("source_id"),
            percentage=Decimal(str(percentage)) if percentage is not None else None,
        )


AdjustmentPredicate = Callable[[Adjustment], bool]


def non_tax(adjustment: Adjustment) -> bool:
    return not adjustment.is_tax


def tax_only(adjustment: Adjustment) -> bool:
    return adjustment.is_tax


def not_included(adjustment: Adjustment) -> bool:
    return not adjustment.included


def both(*predicates: AdjustmentPredicate) -> AdjustmentPredicate:
    """Combine predicates with logical AND."""

    def _matches(adjustment: Adjustment) -> bool:
        return all(p(adjustment) for p in predicates)

    return _matches


@dataclass(frozen=True)
class AdjustmentLedger:
    """Ordered, append-only sequence of adjustments."""

    entries: tuple[Adjustment, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", tuple(self.entries))

    def add(self, adjustment: Adjustment) -> "AdjustmentLedger":
        return AdjustmentLedger(self.entries + (adjustment,))

    def extend(self, adjustments) -> "AdjustmentLedger":
        return AdjustmentLedger(self.entries + tuple(adjustments))

    def all(self) -> tuple[Adjustment, ...]:
        return self.entries

    def filter(self, predicate: AdjustmentPredicate) -> tuple[Adjustment, ...]:
        return tuple(a for a in self.entries if predicate(a))

    def of_type(self, adjustment_type: AdjustmentType) -> tuple[Adjustment, ...]:
        return self.filter(lambda a: a.type is adjustment_type)

    def net(self, predicate: AdjustmentPredicate, currency: str) -> Money:
        """
        Signed sum of all adjustments matching ``predicate``.

        Raises CurrencyMismatch if a matching adjustment is not in
        ``currency``.
        """
        return sum_money((a.amount for a in self.entries if predicate(a)), currency)

    def combined(self) -> tuple[Adjustment, ...]:
        """
        Merge adjustments that only differ in amount.

        Entries are grouped by type, label, source, percentage and
        inclusion; the first occurrence fixes each group's position.
        """
        groups: dict[tuple, Adjustment] = {}
        for adjustment in self.entries:
            key = (
                adjustment.type,
                adjustment.label,
                adjustment.source_id,
                adjustment.percentage,
                adjustment.included,
            )
            existing = groups.get(key)
            if existing is None:
                groups[key] = adjustment
            else:
                groups[key] = replace(
                    existing,
                    amount=existing.amount.add(adjustment.amount),
                    locked=existing.locked or adjustment.locked,
                )
        return tuple(groups.values())

    def __iter__(self) -> Iterator[Adjustment]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)
