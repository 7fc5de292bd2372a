from abc import ABC, abstractmethod

from pizzeria.domain.models import Order


class INotificationService(ABC):
    """Customer emails. Implementations raise NotificationFailed; they never re-query anything."""

    @abstractmethod
    def send_order_confirmation(self, order: Order, estimated_minutes_label: str) -> None:
        pass

    @abstractmethod
    def send_order_cancellation(self, order: Order) -> None:
        pass
