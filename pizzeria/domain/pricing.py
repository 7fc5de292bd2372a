"""
Pricing calculator.

Pure functions: no I/O, no clock of their own. Callers pass `now` when
filtering discounts so an already-placed order can be re-priced against a
frozen snapshot.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

import pytz

from pizzeria.domain.errors import ValidationFailed
from pizzeria.domain.models import AppliedDiscount, Discount, OrderLine, OrderType
from pizzeria.domain.money import Money, money_sum

MAX_DISCOUNT_PERCENTAGE = Decimal(100)


@dataclass(frozen=True)
class PricingResult:
    subtotal: Money
    discount_percentage: Decimal
    discount_amount: Money
    applied_discounts: List[AppliedDiscount]
    subtotal_after_discount: Money
    delivery_fee: Money
    total: Money
    remaining_for_free_delivery: Money


def as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else pytz.utc.localize(value)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC, the form datetimes are written to and read from the database in."""
    return None if value is None else as_aware(value).astimezone(pytz.utc)


def is_discount_active(discount: Discount, now: datetime) -> bool:
    """Enabled, and `now` lies inside the optional [start, end] window."""
    if not discount.enabled:
        return False
    now = as_aware(now)
    if discount.start_date is not None and now < as_aware(discount.start_date):
        return False
    if discount.end_date is not None and now > as_aware(discount.end_date):
        return False
    return True


def active_discounts(discounts: Iterable[Discount], now: datetime) -> List[Discount]:
    """Active discounts, highest percentage first."""
    active = [d for d in discounts if is_discount_active(d, now)]
    active.sort(key=lambda d: d.percentage, reverse=True)
    return active


def validate_line(line: OrderLine) -> None:
    if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity < 1:
        raise ValidationFailed(
            f"Invalid quantity {line.quantity!r} for '{line.name}'",
            {"quantity": "Menge muss mindestens 1 sein"},
        )
    if line.size_price.cents < 0:
        raise ValidationFailed(f"Negative price for '{line.name}'", {"size_price": "Preis darf nicht negativ sein"})
    for extra in line.extras:
        if extra.price.cents < 0:
            raise ValidationFailed(
                f"Negative price for extra '{extra.name}' on '{line.name}'",
                {"extras": "Preis darf nicht negativ sein"},
            )


def calculate_subtotal(lines: Sequence[OrderLine]) -> Money:
    for line in lines:
        validate_line(line)
    return money_sum(line.line_total for line in lines)


def calculate_pricing(
    lines: Sequence[OrderLine],
    discounts: Sequence[Discount],
    free_delivery_threshold: Money,
    standard_delivery_fee: Money,
    order_type: OrderType,
    clamp_discount: bool = True,
) -> PricingResult:
    """
    Prices a cart.

    `discounts` must already be filtered to the active ones (see
    `active_discounts`). Percentages stack additively; with `clamp_discount`
    the sum is capped at 100% so the total never goes negative.
    """
    if standard_delivery_fee.cents < 0:
        raise ValidationFailed("Delivery fee must not be negative", {"delivery_fee": "Liefergebühr darf nicht negativ sein"})

    subtotal = calculate_subtotal(lines)

    percentage = sum((Decimal(str(d.percentage)) for d in discounts), Decimal(0))
    if percentage < 0:
        raise ValidationFailed("Discount percentage must not be negative", {"discounts": "Rabatt darf nicht negativ sein"})
    if clamp_discount and percentage > MAX_DISCOUNT_PERCENTAGE:
        percentage = MAX_DISCOUNT_PERCENTAGE

    discount_amount = subtotal.percent(percentage)
    after_discount = subtotal - discount_amount

    if order_type == OrderType.PICKUP:
        delivery_fee = Money.zero()
        remaining = Money.zero()
    elif after_discount >= free_delivery_threshold:
        delivery_fee = Money.zero()
        remaining = Money.zero()
    else:
        delivery_fee = standard_delivery_fee
        remaining = free_delivery_threshold - after_discount

    return PricingResult(
        subtotal=subtotal,
        discount_percentage=percentage,
        discount_amount=discount_amount,
        applied_discounts=[AppliedDiscount(name=d.name, percentage=Decimal(str(d.percentage))) for d in discounts],
        subtotal_after_discount=after_discount,
        delivery_fee=delivery_fee,
        total=after_discount + delivery_fee,
        remaining_for_free_delivery=remaining,
    )
