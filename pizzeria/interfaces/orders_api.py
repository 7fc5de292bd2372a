import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Request, Response

from pizzeria.application.orchestrator import WorkflowResult
from pizzeria.domain.models import NotificationKind, OrderStatus
from pizzeria.interfaces.IOrderRepository import OrderFilter
from pizzeria.interfaces.schemas import (
    ConfirmIn,
    CreateOrderIn,
    NotificationErrorOut,
    OrderOut,
    QuoteIn,
    QuoteOut,
    StatusIn,
    WorkflowOut,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _workflow_out(result: WorkflowResult) -> WorkflowOut:
    if not result.notification_sent:
        logger.warning("⚠️ Order #%s answered as partial success: %s", result.order.id, result.notification_error)
    return WorkflowOut(
        order=OrderOut.from_domain(result.order),
        notification_sent=result.notification_sent,
        notification_error=NotificationErrorOut.from_error(result.notification_error) if result.notification_error else None,
    )


@router.post("/pricing/quote", response_model=QuoteOut)
def quote(payload: QuoteIn, request: Request):
    orchestrator = request.app.state.orchestrator
    result = orchestrator.quote([line.to_domain() for line in payload.lines], payload.order_type)
    return QuoteOut.from_domain(result)


@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(payload: CreateOrderIn, request: Request):
    """Checkout. The order waits for admin confirmation; no email goes out yet."""
    orchestrator = request.app.state.orchestrator
    order = orchestrator.create_order(
        customer=payload.customer.to_domain(),
        lines=[line.to_domain() for line in payload.lines],
        order_type=payload.order_type,
        payment_method=payload.payment_method,
        notes=payload.notes,
    )
    return OrderOut.from_domain(order)


@router.get("/orders", response_model=List[OrderOut])
def list_orders(
    request: Request,
    status: Optional[OrderStatus] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    cache = request.app.state.order_cache
    cache_key = f"{status.value if status else 'all'}:{date_from.isoformat() if date_from else ''}:{date_to.isoformat() if date_to else ''}"

    cached = cache.get(cache_key)
    if cached is not None:
        logger.debug("Order list served from cache (%s)", cache_key)
        return cached

    orders = request.app.state.orchestrator.list_orders(
        OrderFilter(status=status, created_from=date_from, created_to=date_to)
    )
    payload = [OrderOut.from_domain(order).model_dump(mode="json") for order in orders]
    cache.set(cache_key, payload)
    return payload


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, request: Request):
    return OrderOut.from_domain(request.app.state.orchestrator.get_order(order_id))


@router.post("/orders/{order_id}/confirm", response_model=WorkflowOut)
def confirm_order(order_id: int, request: Request, payload: Optional[ConfirmIn] = None):
    estimated_minutes = payload.estimated_minutes if payload else None
    result = request.app.state.orchestrator.confirm_order(order_id, estimated_minutes)
    return _workflow_out(result)


@router.post("/orders/{order_id}/decline", response_model=WorkflowOut)
def decline_order(order_id: int, request: Request):
    result = request.app.state.orchestrator.decline_order(order_id)
    return _workflow_out(result)


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def update_status(order_id: int, payload: StatusIn, request: Request):
    order = request.app.state.orchestrator.update_status(order_id, payload.status)
    return OrderOut.from_domain(order)


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(order_id: int, request: Request):
    request.app.state.orchestrator.delete_order(order_id)
    return Response(status_code=204)


@router.post("/orders/{order_id}/notifications/{kind}/retry", response_model=OrderOut)
def retry_notification(order_id: int, kind: NotificationKind, request: Request):
    order = request.app.state.orchestrator.retry_notification(order_id, kind)
    return OrderOut.from_domain(order)
