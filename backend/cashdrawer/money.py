# Overview: Integer-cents money value type used for every drawer amount.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

CENTS = Decimal("0.01")

# Largest amount accepted for a single operation (10 billion in major units).
# Accumulated totals stay far inside the signed 64-bit range of the cents columns.
MAX_AMOUNT_CENTS = 10 ** 12


@dataclass(frozen=True, order=True)
class Money:
    """
    Fixed-precision amount stored as integer minor units (cents).

    Floats are rejected on construction so that no amount in the engine is
    ever accumulated in binary floating point.
    """
    cents: int = 0

    def __post_init__(self):
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise TypeError(f"Money requires integer cents, got {type(self.cents).__name__}")

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        return cls(cents)

    @classmethod
    def parse(cls, value) -> "Money":
        """
        Build Money from a decimal string, Decimal, int (major units) or Money.

        "12.50" -> 1250 cents. Sub-cent precision raises ValueError.
        """
        if isinstance(value, Money):
            return value
        if isinstance(value, float):
            raise TypeError("Money cannot be built from float; pass a string or Decimal")
        try:
            amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
        except InvalidOperation as exc:
            raise ValueError(f"Invalid money amount: {value!r}") from exc
        if not amount.is_finite():
            raise ValueError(f"Invalid money amount: {value!r}")
        quantized = amount.quantize(CENTS)
        if quantized != amount:
            raise ValueError(f"Money amount has more than 2 decimal places: {value!r}")
        return cls(int(quantized * 100))

    @property
    def is_negative(self) -> bool:
        return self.cents < 0

    @property
    def is_positive(self) -> bool:
        return self.cents > 0

    @property
    def is_zero(self) -> bool:
        return self.cents == 0

    @property
    def in_range(self) -> bool:
        return abs(self.cents) <= MAX_AMOUNT_CENTS

    def to_decimal(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(CENTS)

    def format(self, symbol: str = "$") -> str:
        sign = "-" if self.cents < 0 else ""
        return f"{sign}{symbol}{abs(self.to_decimal()):,.2f}"

    def __add__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents + other.cents)

    def __radd__(self, other):
        # sum() starts from int 0
        if other == 0:
            return self
        return NotImplemented

    def __sub__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.cents - other.cents)

    def __neg__(self):
        return Money(-self.cents)

    def __str__(self) -> str:
        return str(self.to_decimal())

    def __repr__(self) -> str:
        return f"Money({self.to_decimal()})"
