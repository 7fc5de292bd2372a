from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from pizzeria.domain.errors import NotificationFailed, ValidationFailed
from pizzeria.domain.models import (
    Address,
    Customer,
    LineExtra,
    NotificationKind,
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from pizzeria.domain.money import Money
from pizzeria.domain.pricing import PricingResult
from pizzeria.domain.state_machine import status_label

# Prices arrive as numbers or as loose strings ("9,90"); Money.parse sorts it out.
LoosePrice = Union[float, int, str]


def _price(value: LoosePrice, field_name: str) -> Money:
    try:
        return Money.parse(value)
    except ValueError:
        raise ValidationFailed(f"Invalid price {value!r}", {field_name: "Ungültiger Preis"}) from None


def _amount(money: Money) -> float:
    return float(money.to_decimal())


# --- Requests ---

class ExtraIn(BaseModel):
    id: Optional[str] = None
    name: str
    price: LoosePrice


class LineIn(BaseModel):
    menu_item_id: str
    name: str
    quantity: int
    size_name: str = "Standard"
    size_price: LoosePrice
    extras: List[ExtraIn] = Field(default_factory=list)

    def to_domain(self) -> OrderLine:
        return OrderLine(
            menu_item_id=self.menu_item_id,
            name=self.name,
            quantity=self.quantity,
            size_name=self.size_name,
            size_price=_price(self.size_price, "size_price"),
            extras=tuple(LineExtra(name=e.name, price=_price(e.price, "extras"), extra_id=e.id) for e in self.extras),
        )


class AddressIn(BaseModel):
    street: str
    zip: str
    city: str


class CustomerIn(BaseModel):
    name: str
    phone: str
    email: str
    address: Optional[AddressIn] = None

    def to_domain(self) -> Customer:
        address = None
        if self.address is not None:
            address = Address(street=self.address.street.strip(), zip_code=self.address.zip.strip(), city=self.address.city.strip())
        return Customer(name=self.name.strip(), phone=self.phone.strip(), email=self.email.strip(), address=address)


class QuoteIn(BaseModel):
    lines: List[LineIn]
    order_type: OrderType = OrderType.DELIVERY


class CreateOrderIn(BaseModel):
    customer: CustomerIn
    lines: List[LineIn]
    order_type: OrderType = OrderType.DELIVERY
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class ConfirmIn(BaseModel):
    estimated_minutes: Optional[int] = None


class StatusIn(BaseModel):
    status: OrderStatus


class PromotionIn(BaseModel):
    name: str
    percentage: float
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    enabled: bool = True


class PromotionPatch(BaseModel):
    name: Optional[str] = None
    percentage: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    enabled: Optional[bool] = None


class DeliveryAreaIn(BaseModel):
    zip: str
    city: str


# --- Responses ---

class ExtraOut(BaseModel):
    name: str
    price: float


class LineOut(BaseModel):
    menu_item_id: str
    name: str
    quantity: int
    size_name: str
    size_price: float
    extras: List[ExtraOut]
    line_total: float


class AppliedDiscountOut(BaseModel):
    name: str
    percentage: float


class OrderOut(BaseModel):
    id: int
    status: OrderStatus
    status_label: str
    order_type: OrderType
    customer_name: str
    customer_phone: str
    customer_email: str
    customer_address: Optional[str]
    lines: List[LineOut]
    subtotal: float
    discount_amount: float
    discounts: List[AppliedDiscountOut]
    delivery_fee: float
    total_amount: float
    payment_method: PaymentMethod
    payment_status: str
    estimated_minutes: Optional[int]
    notes: Optional[str]
    created_at: Optional[datetime]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderOut":
        address = order.customer.address
        return cls(
            id=order.id,
            status=order.status,
            status_label=status_label(order.status),
            order_type=order.order_type,
            customer_name=order.customer.name,
            customer_phone=order.customer.phone,
            customer_email=order.customer.email,
            customer_address=address.full if address else None,
            lines=[
                LineOut(
                    menu_item_id=line.menu_item_id,
                    name=line.name,
                    quantity=line.quantity,
                    size_name=line.size_name,
                    size_price=_amount(line.size_price),
                    extras=[ExtraOut(name=e.name, price=_amount(e.price)) for e in line.extras],
                    line_total=_amount(line.line_total),
                )
                for line in order.lines
            ],
            subtotal=_amount(order.subtotal),
            discount_amount=_amount(order.discount_amount),
            discounts=[AppliedDiscountOut(name=d.name, percentage=float(d.percentage)) for d in order.applied_discounts],
            delivery_fee=_amount(order.delivery_fee),
            total_amount=_amount(order.total_amount),
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            estimated_minutes=order.estimated_minutes,
            notes=order.notes,
            created_at=order.created_at,
        )


class QuoteOut(BaseModel):
    subtotal: float
    discount_percentage: float
    discount_amount: float
    discounts: List[AppliedDiscountOut]
    subtotal_after_discount: float
    delivery_fee: float
    total: float
    remaining_for_free_delivery: float

    @classmethod
    def from_domain(cls, result: PricingResult) -> "QuoteOut":
        return cls(
            subtotal=_amount(result.subtotal),
            discount_percentage=float(result.discount_percentage),
            discount_amount=_amount(result.discount_amount),
            discounts=[AppliedDiscountOut(name=d.name, percentage=float(d.percentage)) for d in result.applied_discounts],
            subtotal_after_discount=_amount(result.subtotal_after_discount),
            delivery_fee=_amount(result.delivery_fee),
            total=_amount(result.total),
            remaining_for_free_delivery=_amount(result.remaining_for_free_delivery),
        )


class NotificationErrorOut(BaseModel):
    order_id: int
    kind: NotificationKind
    detail: str

    @classmethod
    def from_error(cls, error: NotificationFailed) -> "NotificationErrorOut":
        return cls(order_id=error.order_id, kind=error.kind, detail=error.detail)


class WorkflowOut(BaseModel):
    """notification_sent=False: the status change is saved, only the email is missing."""
    order: OrderOut
    notification_sent: bool
    notification_error: Optional[NotificationErrorOut] = None


class PromotionOut(BaseModel):
    id: str
    name: str
    percentage: float
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    enabled: bool


class DeliveryAreaOut(BaseModel):
    id: str
    zip: str
    city: str
