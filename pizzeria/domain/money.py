"""Fixed-point money in integer cents.

Prices reach us as floats, Decimals, or loose strings such as "9,90";
everything is converted to cents at the boundary and only turned back into
a 2-decimal value on the way out.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


@dataclass(frozen=True, order=True)
class Money:
    cents: int = 0

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def parse(cls, value) -> "Money":
        """Accepts Money, int/float/Decimal euros, or strings like "9,90" / "12.90 €"."""
        if isinstance(value, Money):
            return value
        if value is None or isinstance(value, bool):
            raise ValueError(f"Not a monetary value: {value!r}")
        if isinstance(value, str):
            cleaned = value.replace("€", "").replace("EUR", "").strip()
            if "," in cleaned and "." in cleaned:
                # de-DE thousands separator: "1.250,50"
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", ".")
            value = cleaned
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a monetary value: {value!r}") from None
        if not amount.is_finite():
            raise ValueError(f"Not a monetary value: {value!r}")
        return cls(int((amount / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP)))

    def to_decimal(self) -> Decimal:
        return (Decimal(self.cents) * CENT).quantize(CENT)

    def percent(self, percentage) -> "Money":
        """`percentage`% of this amount, rounded half-up to the cent."""
        share = Decimal(self.cents) * Decimal(str(percentage)) / Decimal(100)
        return Money(int(share.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))

    def format(self) -> str:
        """de-DE rendering, e.g. 1.250,50 €"""
        sign = "-" if self.cents < 0 else ""
        euros, cents = divmod(abs(self.cents), 100)
        grouped = f"{euros:,}".replace(",", ".")
        return f"{sign}{grouped},{cents:02d} €"

    def __add__(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def __sub__(self, other: "Money") -> "Money":
        return Money(self.cents - other.cents)

    def __mul__(self, factor: int) -> "Money":
        if not isinstance(factor, int) or isinstance(factor, bool):
            return NotImplemented
        return Money(self.cents * factor)

    __rmul__ = __mul__

    def __bool__(self) -> bool:
        return self.cents != 0

    def __str__(self) -> str:
        return str(self.to_decimal())


def money_sum(amounts) -> Money:
    total = Money.zero()
    for amount in amounts:
        total = total + amount
    return total
