from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fakes import NOW, InMemoryOrderRepository, RecordingNotifier, StaticSettingsProvider
from pizzeria.application.orchestrator import Orchestrator
from pizzeria.domain.events import EventBus
from pizzeria.domain.models import (
    Address,
    CheckoutSettings,
    Customer,
    DeliveryArea,
    Discount,
)
from pizzeria.domain.money import Money
from pizzeria.infrastructure.database import Base, make_engine
from pizzeria.infrastructure import tables  # noqa: F401


@pytest.fixture
def customer():
    return Customer(
        name="Anna Schmidt",
        phone="06022 123456",
        email="anna@example.de",
        address=Address(street="Hauptstrasse 12", zip_code="63853", city="Mömlingen"),
    )


@pytest.fixture
def checkout_settings():
    return CheckoutSettings(
        delivery_fee=Money.parse("2.50"),
        free_delivery_threshold=Money.parse("20.00"),
        discounts=[],
        delivery_areas=[DeliveryArea(zip_code="63853", city="Mömlingen"), DeliveryArea(zip_code="63856", city="Obernburg")],
        paypal_enabled=False,
        estimated_pickup_minutes=15,
        estimated_delivery_minutes=40,
    )


@pytest.fixture
def repo():
    return InMemoryOrderRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings_provider(checkout_settings):
    return StaticSettingsProvider(checkout_settings)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def orchestrator(repo, notifier, settings_provider, events):
    return Orchestrator(
        order_repo=repo,
        notifier=notifier,
        settings_provider=settings_provider,
        events=events,
        clock=lambda: NOW,
        clamp_discount=True,
    )


@pytest.fixture
def ten_percent_off():
    return Discount(name="Herbstaktion", percentage=Decimal("10"), id="1")


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
