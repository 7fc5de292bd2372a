from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import AbstractSet, List, Optional

from pizzeria.domain.models import Order, OrderStatus


@dataclass(frozen=True)
class OrderFilter:
    status: Optional[OrderStatus] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    limit: Optional[int] = None


class IOrderRepository(ABC):
    @abstractmethod
    def insert_order(self, order: Order) -> Order:
        """Persist order, lines and extras as one unit. Returns the order with id and created_at set."""
        pass

    @abstractmethod
    def get_order(self, order_id: int) -> Optional[Order]:
        pass

    @abstractmethod
    def list_orders(self, order_filter: Optional[OrderFilter] = None) -> List[Order]:
        """Newest first."""
        pass

    @abstractmethod
    def update_status_if_currently_in(
        self,
        order_id: int,
        expected: AbstractSet[OrderStatus],
        new_status: OrderStatus,
        estimated_minutes: Optional[int] = None,
    ) -> bool:
        """Compare-and-swap on status. False means the order was not in `expected` (or is gone)."""
        pass

    @abstractmethod
    def delete_order(self, order_id: int) -> int:
        """Hard delete of the aggregate. Returns the number of order rows removed."""
        pass
