import logging
from typing import Any, Dict, Optional

import requests

from pizzeria.core.config import settings
from pizzeria.domain.errors import NotificationFailed
from pizzeria.domain.models import NotificationKind, Order
from pizzeria.interfaces.INotificationService import INotificationService

logger = logging.getLogger(__name__)

CONFIRMATION_PATH = "/api/send-order-emails"
CANCELLATION_PATH = "/api/send-order-cancellation"


def build_email_payload(order: Order) -> Dict[str, Any]:
    """Everything the mail backend needs, taken from the order snapshot alone."""
    address = order.customer.address
    return {
        "customer_name": order.customer.name,
        "customer_email": order.customer.email,
        "customer_phone": order.customer.phone,
        "customer_address": address.full if address else "",
        "order_number": str(order.id),
        "order_type": order.order_type.value,
        "items": [
            {
                "name": line.name,
                "quantity": line.quantity,
                "size": {"name": line.size_name or "Standard"},
                "extras": [{"name": extra.name} for extra in line.extras],
                "totalPrice": float(line.line_total.to_decimal()),
            }
            for line in order.lines
        ],
        "subtotal": float(order.subtotal.to_decimal()),
        "delivery_fee": float(order.delivery_fee.to_decimal()),
        "discounts": [{"name": d.name, "percentage": float(d.percentage)} for d in order.applied_discounts],
        "discount_amount": float(order.discount_amount.to_decimal()),
        "total_amount": float(order.total_amount.to_decimal()),
        "payment_method": order.payment_method.value,
        "payment_status": order.payment_status,
        "notes": order.notes,
    }


class HttpEmailService(INotificationService):
    """Posts order emails to the transactional mail backend."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or settings.EMAIL_API_URL).rstrip("/")
        self.timeout = timeout or settings.EMAIL_API_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def send_order_confirmation(self, order: Order, estimated_minutes_label: str) -> None:
        payload = build_email_payload(order)
        payload["estimated_delivery_time"] = estimated_minutes_label
        self._post(CONFIRMATION_PATH, payload, order, NotificationKind.CONFIRMATION)

    def send_order_cancellation(self, order: Order) -> None:
        self._post(CANCELLATION_PATH, build_email_payload(order), order, NotificationKind.CANCELLATION)

    def _post(self, path: str, payload: Dict[str, Any], order: Order, kind: NotificationKind) -> None:
        try:
            response = self.session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("❌ Email API unreachable for order #%s: %s", order.id, e)
            raise NotificationFailed(order.id, kind, str(e)) from e

        if not response.ok:
            try:
                detail = response.json().get("details") or response.text
            except ValueError:
                detail = response.text
            logger.error("❌ Email API rejected %s email for order #%s: %s %s", kind.value, order.id, response.status_code, detail)
            raise NotificationFailed(order.id, kind, f"HTTP {response.status_code}: {detail}")

        logger.info("✅ %s email accepted for %s (order #%s)", kind.value, order.customer.email, order.id)
