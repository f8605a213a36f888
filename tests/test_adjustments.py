"""Tests for adjustments and the adjustment ledger."""

from decimal import Decimal

import pytest

from order_tax.adjustments import (
    Adjustment,
    AdjustmentLedger,
    AdjustmentType,
    both,
    non_tax,
    not_included,
    tax_only,
)
from order_tax.exceptions import CurrencyMismatch
from order_tax.money import Money


def _adj(
    amount: str,
    type_: AdjustmentType = AdjustmentType.PROMOTION,
    label: str = "Discount",
    included: bool = False,
    currency: str = "USD",
    source_id: str | None = None,
) -> Adjustment:
    return Adjustment(
        type=type_,
        label=label,
        amount=Money(Decimal(amount), currency),
        included=included,
        source_id=source_id,
    )


@pytest.fixture
def ledger() -> AdjustmentLedger:
    return (
        AdjustmentLedger()
        .add(_adj("-40"))
        .add(_adj("5", AdjustmentType.FEE, "Handling"))
        .add(_adj("12.60", AdjustmentType.TAX, "VAT"))
        .add(_adj("3", AdjustmentType.TAX, "VAT", included=True))
    )


# ── Append-only behaviour ────────────────────────────────────────────


def test_add_returns_new_ledger():
    empty = AdjustmentLedger()
    one = empty.add(_adj("-1"))
    assert len(empty) == 0
    assert len(one) == 1


def test_all_preserves_insertion_order(ledger: AdjustmentLedger):
    labels = [a.label for a in ledger.all()]
    assert labels == ["Discount", "Handling", "VAT", "VAT"]


def test_adjustments_are_immutable():
    adjustment = _adj("-1")
    with pytest.raises(AttributeError):
        adjustment.label = "changed"


# ── Net sums ─────────────────────────────────────────────────────────


def test_net_non_tax_not_included(ledger: AdjustmentLedger):
    net = ledger.net(both(non_tax, not_included), "USD")
    assert net == Money("-35", "USD")


def test_net_tax_not_included(ledger: AdjustmentLedger):
    assert ledger.net(both(tax_only, not_included), "USD") == Money("12.60", "USD")


def test_net_on_empty_ledger_is_zero():
    assert AdjustmentLedger().net(non_tax, "EUR") == Money("0", "EUR")


def test_net_currency_mismatch_raises():
    ledger = AdjustmentLedger().add(_adj("-1", currency="EUR"))
    with pytest.raises(CurrencyMismatch):
        ledger.net(non_tax, "USD")


def test_net_ignores_position(ledger: AdjustmentLedger):
    reversed_ledger = AdjustmentLedger(tuple(reversed(ledger.all())))
    predicate = both(non_tax, not_included)
    assert reversed_ledger.net(predicate, "USD") == ledger.net(predicate, "USD")


# ── Combining and filtering ──────────────────────────────────────────


def test_combined_merges_same_source():
    ledger = (
        AdjustmentLedger()
        .add(_adj("1.05", AdjustmentType.TAX, "VAT", source_id="vat|nl|standard"))
        .add(_adj("-10"))
        .add(_adj("2.10", AdjustmentType.TAX, "VAT", source_id="vat|nl|standard"))
    )
    combined = ledger.combined()
    assert len(combined) == 2
    assert combined[0].amount == Money("3.15", "USD")
    assert combined[1].label == "Discount"


def test_combined_keeps_included_apart(ledger: AdjustmentLedger):
    combined = ledger.combined()
    vat = [a for a in combined if a.label == "VAT"]
    assert len(vat) == 2


def test_of_type(ledger: AdjustmentLedger):
    assert len(ledger.of_type(AdjustmentType.TAX)) == 2
    assert len(ledger.of_type(AdjustmentType.SHIPPING)) == 0


def test_from_dict():
    adjustment = Adjustment.from_dict(
        {
            "type": "promotion",
            "label": "Discount",
            "amount": {"amount": "-40", "currency": "USD"},
        }
    )
    assert adjustment.type is AdjustmentType.PROMOTION
    assert adjustment.amount == Money("-40", "USD")
    assert adjustment.included is False
