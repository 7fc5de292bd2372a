from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
import logging
from pizzeria.core.config import settings
from pizzeria.domain.events import OrderCreated

logger = logging.getLogger(__name__)


def _whatsapp(number: str) -> str:
    # Twilio requires the "whatsapp:" prefix
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


class AdminAlertService:
    """WhatsApp alert to the restaurant when a new order arrives. Subscribed to OrderCreated."""

    def __init__(self, client=None):
        self.client = client
        self.enabled = client is not None

        # Only initialize if credentials exist in .env
        if self.client is None and settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN:
            try:
                self.client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
                self.enabled = True
                logger.info("✅ AdminAlertService: Twilio Client Initialized")
            except TwilioRestException as e:
                logger.error(f"❌ Failed to initialize Twilio Client: {e}")
        elif self.client is None:
            logger.warning("⚠️ AdminAlertService: Credentials missing in .env. Alerts disabled.")

    def format_message(self, event: OrderCreated) -> str:
        order = event.order
        order_summary = "\n".join(
            f"- {line.quantity}x {line.name} ({line.size_name})" for line in order.lines
        )
        kind = "Lieferung" if order.order_type.value == "delivery" else "Abholung"
        return (
            f"🔔 *NEUE BESTELLUNG #{order.id}*\n\n"
            f"👤 Kunde: {order.customer.name} ({order.customer.phone})\n"
            f"🚚 {kind}\n"
            f"🛒 Bestellung:\n{order_summary}\n\n"
            f"💶 Gesamt: {order.total_amount.format()}\n\n"
            f"💡 *Aktion:* Bitte im Dashboard bestätigen oder ablehnen."
        )

    def notify_admin_new_order(self, event: OrderCreated) -> bool:
        """Sends a WhatsApp message to the Admin."""
        if not self.enabled or not settings.ADMIN_PHONE_NUMBER or not settings.TWILIO_FROM_NUMBER:
            logger.debug("AdminAlertService disabled or numbers missing, skipping order #%s", event.order.id)
            return False

        try:
            self.client.messages.create(
                from_=_whatsapp(settings.TWILIO_FROM_NUMBER),
                body=self.format_message(event),
                to=_whatsapp(settings.ADMIN_PHONE_NUMBER),
            )
            logger.info(f"✅ Admin Notification Sent to {settings.ADMIN_PHONE_NUMBER}")
            return True
        except TwilioRestException as e:
            # The order is already stored; the dashboard still shows it.
            logger.error(f"❌ Failed to send Admin Notification for order #{event.order.id}: {e}")
            return False
