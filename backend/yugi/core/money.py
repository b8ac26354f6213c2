"""Exact GBP amounts.

All arithmetic stays in ``Decimal``. Anything finer than a penny is rounded
half-up once, at the point it is produced, and the rounding is logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
from typing import Iterable, Union

from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

MINOR_UNIT = Decimal("0.01")
CURRENCY_SYMBOL = "£"
# Largest amount accepted from a request. Stored pence must fit a 32-bit column.
MAX_AMOUNT = Decimal("1000000.00")

MoneyLike = Union["Money", Decimal, int, str]


def round_minor(value: Decimal, *, context: str = "") -> Decimal:
    """Round to pence with ROUND_HALF_UP, logging when precision is dropped."""
    rounded = value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)
    if rounded != value:
        logger.info("Rounded %s to %s (%s)", value, rounded, context or "unspecified")
        prometheus_metrics.record_money_rounding(context)
    return rounded


@dataclass(frozen=True, order=True)
class Money:
    """A GBP amount held to the penny."""

    amount: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, Decimal):
            raise TypeError(f"Money requires a Decimal amount, got {type(self.amount).__name__}")
        if not self.amount.is_finite():
            raise ValueError(f"Money amount must be finite, got {self.amount}")
        try:
            rounded = round_minor(self.amount, context="construct")
        except InvalidOperation as exc:
            raise ValueError(f"Money amount out of range: {self.amount}") from exc
        object.__setattr__(self, "amount", rounded)

    @classmethod
    def of(cls, value: MoneyLike) -> "Money":
        """Build from a Decimal, int pounds or decimal string. Floats are rejected."""
        if isinstance(value, Money):
            return value
        if isinstance(value, bool) or isinstance(value, float):
            raise TypeError("Money cannot be built from floats or bools; pass a str or Decimal")
        if isinstance(value, int):
            return cls(Decimal(value))
        if isinstance(value, str):
            try:
                return cls(Decimal(value.strip()))
            except InvalidOperation as exc:
                raise ValueError(f"Invalid money amount: {value!r}") from exc
        return cls(value)

    @classmethod
    def parse(cls, value: MoneyLike) -> "Money":
        """Like ``of`` for request input: also rejects amounts beyond ``MAX_AMOUNT``."""
        money = cls.of(value)
        if abs(money.amount) > MAX_AMOUNT:
            raise ValueError(f"Money amount exceeds {MAX_AMOUNT}: {money.amount}")
        return money

    @classmethod
    def zero(cls) -> "Money":
        return cls(Decimal("0.00"))

    @classmethod
    def from_pence(cls, pence: int) -> "Money":
        return cls(Decimal(int(pence)) / 100)

    @classmethod
    def total(cls, values: Iterable["Money"]) -> "Money":
        amount = Decimal("0.00")
        for value in values:
            amount += value.amount
        return cls(amount)

    @property
    def pence(self) -> int:
        return int((self.amount * 100).to_integral_value(rounding=ROUND_HALF_UP))

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def percentage(self, rate: Decimal, *, context: str = "percentage") -> "Money":
        """Return ``self * rate`` rounded half-up to the penny."""
        return Money(round_minor(self.amount * rate, context=context))

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __neg__(self) -> "Money":
        return Money(-self.amount)

    def __str__(self) -> str:
        sign = "-" if self.amount < 0 else ""
        return f"{sign}{CURRENCY_SYMBOL}{abs(self.amount):,.2f}"

    def to_json(self) -> str:
        """Plain decimal string, e.g. ``"24.29"``."""
        return f"{self.amount:.2f}"
