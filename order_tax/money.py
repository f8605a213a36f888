"""
Currency-bound monetary amounts.

Handles:
- Exact decimal arithmetic (binary floats are rejected)
- Currency checks on every binary operation
- Rounding to the currency's minor unit with a selectable mode
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import (
    Decimal,
    InvalidOperation,
    ROUND_DOWN,
    ROUND_HALF_DOWN,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    ROUND_UP,
)
from enum import Enum
from typing import Union

from order_tax.exceptions import CurrencyMismatch

Scalar = Union[int, str, Decimal]


class RoundingMode(Enum):
    HALF_UP = "half_up"
    HALF_DOWN = "half_down"
    HALF_EVEN = "half_even"
    UP = "up"
    DOWN = "down"

    @property
    def decimal_rounding(self) -> str:
        return _DECIMAL_ROUNDING[self]


_DECIMAL_ROUNDING: dict[RoundingMode, str] = {
    RoundingMode.HALF_UP: ROUND_HALF_UP,
    RoundingMode.HALF_DOWN: ROUND_HALF_DOWN,
    RoundingMode.HALF_EVEN: ROUND_HALF_EVEN,
    RoundingMode.UP: ROUND_UP,
    RoundingMode.DOWN: ROUND_DOWN,
}


# ISO 4217 minor units for the currencies the engine prices in
_FRACTION_DIGITS: dict[str, int] = {
    "AUD": 2,
    "BGN": 2,
    "BHD": 3,
    "CAD": 2,
    "CHF": 2,
    "CZK": 2,
    "DKK": 2,
    "EUR": 2,
    "GBP": 2,
    "HUF": 2,
    "ISK": 0,
    "JPY": 0,
    "KRW": 0,
    "KWD": 3,
    "MXN": 2,
    "NOK": 2,
    "NZD": 2,
    "OMR": 3,
    "PLN": 2,
    "RON": 2,
    "SEK": 2,
    "USD": 2,
}


# Minor units assumed for codes missing from the table
DEFAULT_FRACTION_DIGITS = 2


def is_supported_currency(currency: str) -> bool:
    """Whether tax types may price in ``currency``."""
    return currency.upper() in _FRACTION_DIGITS


def fraction_digits(currency: str) -> int:
    """Return the number of minor-unit digits for a currency code."""
    return _FRACTION_DIGITS.get(currency.upper(), DEFAULT_FRACTION_DIGITS)


def _to_decimal(value: Scalar) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(
            f"Monetary values must be Decimal, int or str, not {type(value).__name__}"
        )
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a decimal number: {value!r}") from None


@dataclass(frozen=True)
class Money:
    """An exact decimal amount in a single currency."""

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        currency = str(self.currency).strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValueError(f"Invalid currency code: {self.currency!r}")
        object.__setattr__(self, "amount", _to_decimal(self.amount))
        object.__setattr__(self, "currency", currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(Decimal("0"), currency)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatch(self.currency, other.currency)

    def add(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def subtract(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def multiply(self, factor: Scalar) -> "Money":
        return Money(self.amount * _to_decimal(factor), self.currency)

    def divide(self, divisor: Scalar) -> "Money":
        divisor = _to_decimal(divisor)
        if divisor == 0:
            raise ZeroDivisionError("Cannot divide Money by zero")
        return Money(self.amount / divisor, self.currency)

    def negate(self) -> "Money":
        return Money(-self.amount, self.currency)

    def round(self, mode: RoundingMode = RoundingMode.HALF_UP) -> "Money":
        """
        Quantize to the currency's minor unit.

        Rounding an already-rounded value returns an identical value.
        """
        exponent = Decimal(1).scaleb(-fraction_digits(self.currency))
        return Money(
            self.amount.quantize(exponent, rounding=mode.decimal_rounding),
            self.currency,
        )

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare(self, other: "Money") -> int:
        """Return -1, 0 or 1. Raises CurrencyMismatch across currencies."""
        self._check_currency(other)
        if self.amount < other.amount:
            return -1
        if self.amount > other.amount:
            return 1
        return 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_zero(self) -> bool:
        return self.amount == 0

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __mul__(self, factor: Scalar) -> "Money":
        if isinstance(factor, Money):
            return NotImplemented
        return self.multiply(factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Scalar) -> "Money":
        if isinstance(divisor, Money):
            return NotImplemented
        return self.divide(divisor)

    def __neg__(self) -> "Money":
        return self.negate()

    def __lt__(self, other: "Money") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "Money") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "Money") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "Money") -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    @classmethod
    def from_dict(cls, data: dict) -> "Money":
        return cls(_to_decimal(str(data["amount"])), data["currency"])

    def to_dict(self) -> dict[str, str]:
        return {"amount": str(self.amount), "currency": self.currency}


def sum_money(values, currency: str) -> Money:
    """Sum Money values, starting from zero in ``currency``."""
    total = Money.zero(currency)
    for value in values:
        total = total.add(value)
    return total
