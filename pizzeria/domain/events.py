"""
Domain events.

The workflow publishes plain facts; whoever cares (admin alert, dashboard
cache, a sound in the browser) subscribes. Observer failures are logged and
never fail the command that produced the event.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Type

from pizzeria.domain.models import NotificationKind, Order, OrderStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderEvent:
    order: Order


@dataclass(frozen=True)
class OrderCreated(OrderEvent):
    pass


@dataclass(frozen=True)
class OrderConfirmed(OrderEvent):
    notification_sent: bool


@dataclass(frozen=True)
class OrderDeclined(OrderEvent):
    notification_sent: bool


@dataclass(frozen=True)
class OrderStatusChanged(OrderEvent):
    previous_status: OrderStatus


@dataclass(frozen=True)
class OrderDeleted(OrderEvent):
    pass


@dataclass(frozen=True)
class NotificationResent(OrderEvent):
    kind: NotificationKind


Handler = Callable[[OrderEvent], None]


class EventBus:
    def __init__(self):
        self._handlers: Dict[Type[OrderEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[OrderEvent], handler: Handler) -> None:
        """Subscribing to OrderEvent receives everything."""
        self._handlers[event_type].append(handler)

    def publish(self, event: OrderEvent) -> None:
        for event_type, handlers in list(self._handlers.items()):
            if not isinstance(event, event_type):
                continue
            for handler in list(handlers):
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "❌ Event handler %r failed for %s (order #%s)",
                        handler, type(event).__name__, event.order.id,
                    )
