from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from pizzeria.domain.money import Money, money_sum


class OrderStatus(str, Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderType(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMethod(str, Enum):
    CASH = "cash"
    PAYPAL = "paypal"


class NotificationKind(str, Enum):
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"


@dataclass(frozen=True)
class Address:
    street: str
    zip_code: str
    city: str

    @property
    def full(self) -> str:
        return f"{self.street}, {self.zip_code} {self.city}"


@dataclass(frozen=True)
class Customer:
    name: str
    phone: str
    email: str
    address: Optional[Address] = None


@dataclass(frozen=True)
class LineExtra:
    """An extra topping, denormalized at order time."""
    name: str
    price: Money
    extra_id: Optional[str] = None


@dataclass(frozen=True)
class OrderLine:
    menu_item_id: str
    name: str
    quantity: int
    size_name: str
    size_price: Money
    extras: Tuple[LineExtra, ...] = ()

    @property
    def unit_price(self) -> Money:
        return self.size_price + money_sum(extra.price for extra in self.extras)

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Discount:
    """A promotion: percentage off, optionally bounded by a date window."""
    name: str
    percentage: Decimal
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    enabled: bool = True
    id: Optional[str] = None


@dataclass(frozen=True)
class AppliedDiscount:
    """Snapshot of a discount as it was when the order was priced."""
    name: str
    percentage: Decimal


@dataclass(frozen=True)
class DeliveryArea:
    zip_code: str
    city: str
    id: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSettings:
    """Everything the workflow reads from the settings store, read once per command."""
    delivery_fee: Money
    free_delivery_threshold: Money
    discounts: List[Discount] = field(default_factory=list)
    delivery_areas: List[DeliveryArea] = field(default_factory=list)
    paypal_enabled: bool = False
    estimated_pickup_minutes: int = 15
    estimated_delivery_minutes: int = 40


@dataclass(frozen=True)
class Order:
    """The order aggregate: owns its lines and their extras."""
    id: Optional[int]
    status: OrderStatus
    order_type: OrderType
    customer: Customer
    lines: Tuple[OrderLine, ...]
    subtotal: Money
    discount_amount: Money
    delivery_fee: Money
    total_amount: Money
    payment_method: PaymentMethod
    applied_discounts: Tuple[AppliedDiscount, ...] = ()
    payment_status: str = "pending"
    estimated_minutes: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
