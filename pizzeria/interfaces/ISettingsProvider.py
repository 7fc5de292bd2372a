from abc import ABC, abstractmethod

from pizzeria.domain.models import CheckoutSettings


class ISettingsProvider(ABC):
    @abstractmethod
    def get_checkout_settings(self) -> CheckoutSettings:
        """Delivery fee, free-delivery threshold, all discounts, delivery areas and time defaults."""
        pass
