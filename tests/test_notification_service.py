from unittest.mock import MagicMock

import pytest
from twilio.base.exceptions import TwilioRestException

from fakes import margherita, salami
from pizzeria.core.config import settings
from pizzeria.domain.events import OrderCreated
from pizzeria.domain.models import OrderType
from pizzeria.infrastructure.notification_service import AdminAlertService


@pytest.fixture
def created(orchestrator, customer):
    return OrderCreated(orchestrator.create_order(customer, [margherita(quantity=2), salami()], OrderType.DELIVERY))


@pytest.fixture
def numbers(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_FROM_NUMBER", "+14155238886")
    monkeypatch.setattr(settings, "ADMIN_PHONE_NUMBER", "whatsapp:+4960221234")


def test_message_lists_the_order(created):
    message = AdminAlertService(client=MagicMock()).format_message(created)

    assert f"#{created.order.id}" in message
    assert "Anna Schmidt (06022 123456)" in message
    assert "- 2x Pizza Margherita (Normal)" in message
    assert "Lieferung" in message
    assert "37,20 €" in message


def test_sends_whatsapp_to_admin(created, numbers):
    client = MagicMock()

    assert AdminAlertService(client=client).notify_admin_new_order(created) is True

    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["from_"] == "whatsapp:+14155238886"
    assert kwargs["to"] == "whatsapp:+4960221234"


def test_disabled_without_admin_number(created, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PHONE_NUMBER", None)
    client = MagicMock()

    assert AdminAlertService(client=client).notify_admin_new_order(created) is False
    client.messages.create.assert_not_called()


def test_disabled_without_credentials(created, numbers, monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", None)
    monkeypatch.setattr(settings, "TWILIO_AUTH_TOKEN", None)

    service = AdminAlertService()

    assert service.enabled is False
    assert service.notify_admin_new_order(created) is False


def test_twilio_error_is_reported_not_raised(created, numbers):
    client = MagicMock()
    client.messages.create.side_effect = TwilioRestException(400, "/Messages.json", "invalid number")

    assert AdminAlertService(client=client).notify_admin_new_order(created) is False


def test_new_orders_trigger_the_alert(orchestrator, events, customer, numbers):
    client = MagicMock()
    events.subscribe(OrderCreated, AdminAlertService(client=client).notify_admin_new_order)

    orchestrator.create_order(customer, [margherita()], OrderType.PICKUP)

    client.messages.create.assert_called_once()
