import logging
from decimal import Decimal
from typing import AbstractSet, List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from pizzeria.domain.errors import PersistenceFailed
from pizzeria.domain.models import (
    Address,
    AppliedDiscount,
    Customer,
    LineExtra,
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from pizzeria.domain.money import Money
from pizzeria.domain.pricing import as_utc
from pizzeria.infrastructure.database import SessionLocal
from pizzeria.infrastructure.tables import OrderItemExtraRow, OrderItemRow, OrderRow
from pizzeria.interfaces.IOrderRepository import IOrderRepository, OrderFilter

logger = logging.getLogger(__name__)


def _money(value) -> Money:
    return Money.zero() if value is None else Money.parse(value)


def order_from_row(row: OrderRow) -> Order:
    address = None
    if row.customer_street or row.customer_zip or row.customer_city:
        address = Address(street=row.customer_street or "", zip_code=row.customer_zip or "", city=row.customer_city or "")

    lines = tuple(
        OrderLine(
            menu_item_id=item.menu_item_id,
            name=item.name,
            quantity=item.quantity,
            size_name=item.size_name or "Standard",
            size_price=_money(item.size_price),
            extras=tuple(
                LineExtra(name=extra.extra_name, price=_money(extra.extra_price), extra_id=extra.extra_id)
                for extra in item.extras
            ),
        )
        for item in row.items
    )

    return Order(
        id=row.id,
        status=OrderStatus(row.status),
        order_type=OrderType(row.order_type),
        customer=Customer(name=row.customer_name, phone=row.customer_phone, email=row.customer_email, address=address),
        lines=lines,
        subtotal=_money(row.subtotal),
        discount_amount=_money(row.discount_amount),
        delivery_fee=_money(row.delivery_fee),
        total_amount=_money(row.total_amount),
        payment_method=PaymentMethod(row.payment_method),
        applied_discounts=tuple(
            AppliedDiscount(name=d["name"], percentage=Decimal(str(d["percentage"])))
            for d in (row.discounts or [])
        ),
        payment_status=row.payment_status,
        estimated_minutes=row.estimated_minutes,
        notes=row.notes,
        created_at=as_utc(row.created_at),
    )


def row_from_order(order: Order) -> OrderRow:
    address = order.customer.address
    row = OrderRow(
        status=order.status.value,
        order_type=order.order_type.value,
        customer_name=order.customer.name,
        customer_phone=order.customer.phone,
        customer_email=order.customer.email,
        customer_street=address.street if address else None,
        customer_zip=address.zip_code if address else None,
        customer_city=address.city if address else None,
        subtotal=order.subtotal.to_decimal(),
        discount_amount=order.discount_amount.to_decimal(),
        delivery_fee=order.delivery_fee.to_decimal(),
        total_amount=order.total_amount.to_decimal(),
        discounts=[{"name": d.name, "percentage": str(d.percentage)} for d in order.applied_discounts],
        payment_method=order.payment_method.value,
        payment_status=order.payment_status,
        estimated_minutes=order.estimated_minutes,
        notes=order.notes,
    )
    for position, line in enumerate(order.lines):
        row.items.append(
            OrderItemRow(
                position=position,
                menu_item_id=line.menu_item_id,
                name=line.name,
                quantity=line.quantity,
                size_name=line.size_name,
                size_price=line.size_price.to_decimal(),
                price=line.line_total.to_decimal(),
                extras=[
                    OrderItemExtraRow(extra_id=extra.extra_id, extra_name=extra.name, extra_price=extra.price.to_decimal())
                    for extra in line.extras
                ],
            )
        )
    return row


class SqlAlchemyOrderRepository(IOrderRepository):

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def _query(self, session):
        return session.query(OrderRow).options(selectinload(OrderRow.items).selectinload(OrderItemRow.extras))

    def insert_order(self, order: Order) -> Order:
        session = self.session_factory()
        try:
            row = row_from_order(order)
            session.add(row)
            # Order, items and extras commit together or not at all.
            session.commit()
            return order_from_row(self._query(session).filter(OrderRow.id == row.id).one())
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("❌ DB Error inserting order: %s", e)
            raise PersistenceFailed("insert_order", str(e)) from e
        finally:
            session.close()

    def get_order(self, order_id: int) -> Optional[Order]:
        session = self.session_factory()
        try:
            row = self._query(session).filter(OrderRow.id == order_id).one_or_none()
            return order_from_row(row) if row else None
        except SQLAlchemyError as e:
            logger.error("❌ DB Read Error for order #%s: %s", order_id, e)
            raise PersistenceFailed("get_order", str(e)) from e
        finally:
            session.close()

    def list_orders(self, order_filter: Optional[OrderFilter] = None) -> List[Order]:
        """
        Retrieves orders, newest first.
        Optionally filtered by status and by a created_at range (inclusive).
        """
        order_filter = order_filter or OrderFilter()
        session = self.session_factory()
        try:
            query = self._query(session)
            if order_filter.status is not None:
                query = query.filter(OrderRow.status == OrderStatus(order_filter.status).value)
            if order_filter.created_from is not None:
                query = query.filter(OrderRow.created_at >= as_utc(order_filter.created_from))
            if order_filter.created_to is not None:
                query = query.filter(OrderRow.created_at <= as_utc(order_filter.created_to))
            query = query.order_by(desc(OrderRow.created_at), desc(OrderRow.id))
            if order_filter.limit:
                query = query.limit(order_filter.limit)
            return [order_from_row(row) for row in query.all()]
        except SQLAlchemyError as e:
            logger.error("❌ DB Read Error: %s", e)
            raise PersistenceFailed("list_orders", str(e)) from e
        finally:
            session.close()

    def update_status_if_currently_in(
        self,
        order_id: int,
        expected: AbstractSet[OrderStatus],
        new_status: OrderStatus,
        estimated_minutes: Optional[int] = None,
    ) -> bool:
        values = {OrderRow.status: OrderStatus(new_status).value}
        if estimated_minutes is not None:
            values[OrderRow.estimated_minutes] = estimated_minutes

        session = self.session_factory()
        try:
            # Single conditional UPDATE: the status check and the write cannot be split.
            rows = (
                session.query(OrderRow)
                .filter(OrderRow.id == order_id, OrderRow.status.in_([OrderStatus(s).value for s in expected]))
                .update(values, synchronize_session=False)
            )
            session.commit()
            return rows == 1
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("❌ DB Error updating status of order #%s: %s", order_id, e)
            raise PersistenceFailed("update_status", str(e)) from e
        finally:
            session.close()

    def delete_order(self, order_id: int) -> int:
        session = self.session_factory()
        try:
            row = session.query(OrderRow).filter(OrderRow.id == order_id).one_or_none()
            if row is None:
                return 0
            # ORM cascade removes items and extras with the order.
            session.delete(row)
            session.commit()
            return 1
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("❌ DB Error deleting order #%s: %s", order_id, e)
            raise PersistenceFailed("delete_order", str(e)) from e
        finally:
            session.close()
