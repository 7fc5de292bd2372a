import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence

import pytz

from pizzeria.core.config import settings
from pizzeria.domain.errors import InvalidTransition, NotFound, NotificationFailed
from pizzeria.domain.events import (
    EventBus,
    NotificationResent,
    OrderConfirmed,
    OrderCreated,
    OrderDeclined,
    OrderDeleted,
    OrderStatusChanged,
)
from pizzeria.domain.models import (
    Customer,
    NotificationKind,
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from pizzeria.domain.pricing import PricingResult, active_discounts, calculate_pricing
from pizzeria.domain.state_machine import (
    Confirm,
    Decline,
    OrderEvent,
    Transition,
    event_for_status,
    transition,
)
from pizzeria.domain.validation import validate_checkout
from pizzeria.interfaces.INotificationService import INotificationService
from pizzeria.interfaces.IOrderRepository import IOrderRepository, OrderFilter
from pizzeria.interfaces.ISettingsProvider import ISettingsProvider

logger = logging.getLogger(__name__)

# Statuses an order can be in once it has legitimately been confirmed.
CONFIRMED_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED})


def estimated_minutes_label(minutes: int) -> str:
    return f"{minutes} Minuten"


def restaurant_now() -> datetime:
    return datetime.now(pytz.timezone(settings.RESTAURANT_TIMEZONE))


@dataclass(frozen=True)
class WorkflowResult:
    """Outcome of confirm/decline: the status change happened; the email may not have."""
    order: Order
    notification_error: Optional[NotificationFailed] = None

    @property
    def notification_sent(self) -> bool:
        return self.notification_error is None


class Orchestrator:
    def __init__(
        self,
        order_repo: IOrderRepository,
        notifier: INotificationService,
        settings_provider: ISettingsProvider,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = restaurant_now,
        clamp_discount: Optional[bool] = None,
    ):
        self.order_repo = order_repo
        self.notifier = notifier
        self.settings_provider = settings_provider
        self.events = events or EventBus()
        self.clock = clock
        self.clamp_discount = settings.CLAMP_DISCOUNT_AT_100 if clamp_discount is None else clamp_discount

    # --- QUERIES ---

    def quote(self, lines: Sequence[OrderLine], order_type: OrderType) -> PricingResult:
        """Prices a cart against the currently active discounts without persisting anything."""
        checkout = self.settings_provider.get_checkout_settings()
        return calculate_pricing(
            lines,
            active_discounts(checkout.discounts, self.clock()),
            checkout.free_delivery_threshold,
            checkout.delivery_fee,
            order_type,
            clamp_discount=self.clamp_discount,
        )

    def get_order(self, order_id: int) -> Order:
        order = self.order_repo.get_order(order_id)
        if order is None:
            raise NotFound(order_id)
        return order

    def list_orders(self, order_filter: Optional[OrderFilter] = None) -> List[Order]:
        return self.order_repo.list_orders(order_filter)

    # --- COMMANDS ---

    def create_order(
        self,
        customer: Customer,
        lines: Sequence[OrderLine],
        order_type: OrderType,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        notes: Optional[str] = None,
    ) -> Order:
        order_type = OrderType(order_type)
        payment_method = PaymentMethod(payment_method)
        logger.info("[ORCHESTRATOR] Creating %s order for %s (%d lines)", order_type.value, customer.name, len(lines))

        # Read once; the discount snapshot below is frozen into the order.
        checkout = self.settings_provider.get_checkout_settings()
        validate_checkout(customer, lines, order_type, payment_method, checkout.delivery_areas, checkout.paypal_enabled)

        pricing = calculate_pricing(
            lines,
            active_discounts(checkout.discounts, self.clock()),
            checkout.free_delivery_threshold,
            checkout.delivery_fee,
            order_type,
            clamp_discount=self.clamp_discount,
        )

        draft = Order(
            id=None,
            status=OrderStatus.AWAITING_CONFIRMATION,
            order_type=order_type,
            customer=customer,
            lines=tuple(lines),
            subtotal=pricing.subtotal,
            discount_amount=pricing.discount_amount,
            delivery_fee=pricing.delivery_fee,
            total_amount=pricing.total,
            payment_method=payment_method,
            applied_discounts=tuple(pricing.applied_discounts),
            notes=notes.strip() if notes and notes.strip() else None,
        )
        order = self.order_repo.insert_order(draft)
        logger.info("✅ Order #%s created, total %s, awaiting admin confirmation", order.id, order.total_amount.format())

        self.events.publish(OrderCreated(order))
        return order

    def confirm_order(self, order_id: int, estimated_minutes: Optional[int] = None) -> WorkflowResult:
        order = self.get_order(order_id)
        if estimated_minutes is None:
            checkout = self.settings_provider.get_checkout_settings()
            estimated_minutes = (
                checkout.estimated_pickup_minutes if order.order_type == OrderType.PICKUP
                else checkout.estimated_delivery_minutes
            )

        step = self._apply(order, Confirm(estimated_minutes))
        confirmed = replace(order, status=step.status, estimated_minutes=step.estimated_minutes)
        logger.info("✅ Order #%s confirmed (%s)", order_id, estimated_minutes_label(estimated_minutes))

        error = self._execute_intents(confirmed, step)
        self.events.publish(OrderConfirmed(confirmed, notification_sent=error is None))
        return WorkflowResult(confirmed, error)

    def decline_order(self, order_id: int) -> WorkflowResult:
        order = self.get_order(order_id)
        step = self._apply(order, Decline())
        declined = replace(order, status=step.status)
        logger.info("🚫 Order #%s declined", order_id)

        error = self._execute_intents(declined, step)
        self.events.publish(OrderDeclined(declined, notification_sent=error is None))
        return WorkflowResult(declined, error)

    def update_status(self, order_id: int, new_status: OrderStatus) -> Order:
        """Admin override. Never sends an email, even when it skips Confirm."""
        order = self.get_order(order_id)
        step = self._apply(order, event_for_status(new_status))
        updated = replace(order, status=step.status)
        logger.info("[ORCHESTRATOR] Order #%s status %s -> %s", order_id, step.previous.value, step.status.value)

        self.events.publish(OrderStatusChanged(updated, previous_status=step.previous))
        return updated

    def delete_order(self, order_id: int) -> None:
        order = self.get_order(order_id)
        rows = self.order_repo.delete_order(order_id)
        if rows == 0:
            logger.error("❌ Order #%s deletion failed - no rows affected", order_id)
            raise NotFound(order_id)
        logger.info("🗑️ Order #%s deleted", order_id)
        self.events.publish(OrderDeleted(order))

    def retry_notification(self, order_id: int, kind: NotificationKind) -> Order:
        """Re-sends just the email of a confirm/decline whose notification failed."""
        kind = NotificationKind(kind)
        order = self.get_order(order_id)

        if kind == NotificationKind.CONFIRMATION:
            if order.status not in CONFIRMED_STATUSES or order.estimated_minutes is None:
                raise InvalidTransition(order.status, "RetryConfirmationEmail")
            self.notifier.send_order_confirmation(order, estimated_minutes_label(order.estimated_minutes))
        else:
            if order.status != OrderStatus.CANCELLED:
                raise InvalidTransition(order.status, "RetryCancellationEmail")
            self.notifier.send_order_cancellation(order)

        logger.info("📧 %s email re-sent for order #%s", kind.value, order_id)
        self.events.publish(NotificationResent(order, kind=kind))
        return order

    # --- HELPERS ---

    def _apply(self, order: Order, event: OrderEvent) -> Transition:
        step = transition(order.status, event)
        acknowledged = self.order_repo.update_status_if_currently_in(
            order.id, step.expected, step.status, estimated_minutes=step.estimated_minutes
        )
        if not acknowledged:
            # Someone else changed (or deleted) the order between our read and write.
            logger.warning("⚠️ Order #%s: %s lost the race, status no longer %s", order.id, event.name, order.status.value)
            raise InvalidTransition(order.status, event.name, f"Order #{order.id} was changed concurrently; reload it")
        return step

    def _execute_intents(self, order: Order, step: Transition) -> Optional[NotificationFailed]:
        for intent in step.intents:
            try:
                if intent.kind == NotificationKind.CONFIRMATION:
                    self.notifier.send_order_confirmation(order, estimated_minutes_label(order.estimated_minutes))
                else:
                    self.notifier.send_order_cancellation(order)
            except NotificationFailed as e:
                logger.warning("⚠️ Order #%s saved as '%s' but email failed: %s", order.id, order.status.value, e)
                return e
            logger.info("📧 %s email sent for order #%s", intent.kind.value, order.id)
        return None
