"""Money: the one monetary type used from cart to order.

Amounts are kept as ``Decimal`` throughout pricing so that totals are exact and
reproducible. Aggregates persist money in Float fields; ``Money.from_stored``
and ``Money.to_stored`` are the only crossing points between the two.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_UNIT = Decimal("1")
_HUNDRED = Decimal("100")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return Decimal(int(value))
        # repr() gives the shortest string that round-trips, so 0.1 stays 0.1
        return Decimal(repr(value))
    if isinstance(value, int | str):
        return Decimal(value)
    raise TypeError(f"Cannot interpret {value!r} as a monetary amount")


@dataclass(frozen=True, order=True)
class Money:
    amount: Decimal = Decimal("0")

    def __post_init__(self):
        object.__setattr__(self, "amount", _to_decimal(self.amount))

    @classmethod
    def of(cls, value) -> "Money":
        return value if isinstance(value, Money) else cls(_to_decimal(value))

    @classmethod
    def zero(cls) -> "Money":
        return cls(Decimal("0"))

    @classmethod
    def from_stored(cls, value) -> "Money":
        """Read a persisted Float field; missing values count as zero."""
        if value is None:
            return cls.zero()
        return cls.of(value)

    def to_stored(self) -> float:
        return float(self.amount)

    def __add__(self, other) -> "Money":
        return Money(self.amount + _to_decimal(other))

    def __sub__(self, other) -> "Money":
        return Money(self.amount - _to_decimal(other))

    def __mul__(self, factor) -> "Money":
        if isinstance(factor, Money):
            raise TypeError("Money can only be multiplied by a plain number")
        return Money(self.amount * _to_decimal(factor))

    __rmul__ = __mul__

    def percent(self, rate) -> "Money":
        """``rate`` percent of this amount, e.g. ``Money(200).percent(10) == Money(20)``."""
        return Money(self.amount * _to_decimal(rate) / _HUNDRED)

    def rounded(self) -> "Money":
        """Round half-up to the integer currency unit."""
        return Money(self.amount.quantize(_UNIT, rounding=ROUND_HALF_UP))

    def clamp(self, low=None, high=None) -> "Money":
        amount = self.amount
        if low is not None:
            amount = max(amount, _to_decimal(low))
        if high is not None:
            amount = min(amount, _to_decimal(high))
        return Money(amount)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def __str__(self) -> str:
        return f"{self.amount:f}"


def total_of(amounts) -> Money:
    """Sum an iterable of Money values."""
    result = Money.zero()
    for amount in amounts:
        result = result + amount
    return result
