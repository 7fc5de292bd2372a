from dataclasses import replace
from decimal import Decimal

import pytest

from fakes import margherita, salami
from pizzeria.domain.errors import InvalidTransition, NotFound, NotificationFailed, PersistenceFailed, ValidationFailed
from pizzeria.domain.events import (
    NotificationResent,
    OrderConfirmed,
    OrderCreated,
    OrderDeclined,
    OrderDeleted,
    OrderEvent,
    OrderStatusChanged,
)
from pizzeria.domain.models import Address, Discount, NotificationKind, OrderStatus, OrderType, PaymentMethod
from pizzeria.domain.money import Money


@pytest.fixture
def placed(orchestrator, customer):
    return orchestrator.create_order(customer, [margherita(quantity=2)], OrderType.DELIVERY)


@pytest.fixture
def published(events):
    seen = []
    events.subscribe(OrderEvent, seen.append)
    return seen


class TestCreateOrder:
    def test_prices_and_stores_awaiting_confirmation(self, orchestrator, repo, notifier, customer):
        order = orchestrator.create_order(customer, [margherita(quantity=2)], OrderType.DELIVERY, notes="  Klingel defekt ")

        assert order.id == 1
        assert order.status == OrderStatus.AWAITING_CONFIRMATION
        assert order.subtotal == Money.parse("25.80")
        assert order.delivery_fee == Money.zero()
        assert order.total_amount == Money.parse("25.80")
        assert order.estimated_minutes is None
        assert order.notes == "Klingel defekt"
        assert order.created_at is not None
        assert repo.orders[1] == order
        assert notifier.confirmations == [] and notifier.cancellations == []

    def test_small_delivery_order_pays_fee(self, orchestrator, customer, checkout_settings, settings_provider, ten_percent_off):
        settings_provider.checkout = replace(checkout_settings, discounts=[ten_percent_off])
        cart = [replace(margherita(quantity=1), size_price=Money.parse("18.00"))]

        order = orchestrator.create_order(customer, cart, OrderType.DELIVERY)

        assert order.discount_amount == Money.parse("1.80")
        assert order.delivery_fee == Money.parse("2.50")
        assert order.total_amount == Money.parse("18.70")
        assert [(d.name, d.percentage) for d in order.applied_discounts] == [("Herbstaktion", Decimal("10"))]

    def test_only_active_discounts_are_applied(self, orchestrator, customer, checkout_settings, settings_provider, ten_percent_off):
        disabled = Discount(name="Alt", percentage=Decimal("50"), enabled=False)
        settings_provider.checkout = replace(checkout_settings, discounts=[ten_percent_off, disabled])

        order = orchestrator.create_order(customer, [margherita()], OrderType.PICKUP)

        assert [d.name for d in order.applied_discounts] == ["Herbstaktion"]

    def test_discount_snapshot_is_not_recomputed(self, orchestrator, repo, customer, checkout_settings, settings_provider, ten_percent_off):
        settings_provider.checkout = replace(checkout_settings, discounts=[ten_percent_off])
        order = orchestrator.create_order(customer, [margherita()], OrderType.PICKUP)

        # The promotion changes after checkout.
        settings_provider.checkout = replace(checkout_settings, discounts=[replace(ten_percent_off, percentage=Decimal("50"))])
        orchestrator.confirm_order(order.id, 20)

        stored = repo.orders[order.id]
        assert stored.discount_amount == Money.parse("2.58")
        assert stored.applied_discounts[0].percentage == Decimal("10")

    def test_settings_read_once_per_checkout(self, orchestrator, settings_provider, customer):
        orchestrator.create_order(customer, [margherita()], OrderType.DELIVERY)
        assert settings_provider.reads == 1

    def test_empty_cart_is_rejected_before_writing(self, orchestrator, repo, customer):
        with pytest.raises(ValidationFailed) as excinfo:
            orchestrator.create_order(customer, [], OrderType.DELIVERY)

        assert "lines" in excinfo.value.errors
        assert repo.orders == {}

    def test_address_outside_delivery_area(self, orchestrator, repo, customer):
        outside = replace(customer, address=Address(street="Zeil 1", zip_code="60313", city="Frankfurt"))

        with pytest.raises(ValidationFailed):
            orchestrator.create_order(outside, [margherita()], OrderType.DELIVERY)
        assert repo.orders == {}

    def test_pickup_from_anywhere(self, orchestrator, customer):
        outside = replace(customer, address=None)
        order = orchestrator.create_order(outside, [salami()], OrderType.PICKUP, PaymentMethod.CASH)

        assert order.order_type == OrderType.PICKUP
        assert order.delivery_fee == Money.zero()
        assert order.total_amount == Money.parse("11.40")

    def test_negative_quantity_fails_fast(self, orchestrator, repo, customer):
        with pytest.raises(ValidationFailed):
            orchestrator.create_order(customer, [margherita(quantity=-1)], OrderType.DELIVERY)
        assert repo.orders == {}

    def test_persistence_failure_propagates(self, orchestrator, repo, customer, published):
        repo.fail_insert = True

        with pytest.raises(PersistenceFailed):
            orchestrator.create_order(customer, [margherita()], OrderType.DELIVERY)
        assert repo.orders == {}
        assert published == []

    def test_publishes_order_created(self, orchestrator, customer, published):
        order = orchestrator.create_order(customer, [margherita()], OrderType.DELIVERY)
        assert published == [OrderCreated(order)]


class TestConfirmOrder:
    def test_confirm_sends_exactly_one_email(self, orchestrator, repo, notifier, placed):
        result = orchestrator.confirm_order(placed.id, 35)

        assert result.notification_sent
        assert result.order.status == OrderStatus.PENDING
        assert result.order.estimated_minutes == 35
        assert repo.orders[placed.id].status == OrderStatus.PENDING
        assert repo.orders[placed.id].estimated_minutes == 35
        assert len(notifier.confirmations) == 1
        sent, label = notifier.confirmations[0]
        assert label == "35 Minuten"
        assert sent.lines == placed.lines

    def test_second_confirm_is_rejected_without_second_email(self, orchestrator, repo, notifier, placed):
        orchestrator.confirm_order(placed.id, 30)

        with pytest.raises(InvalidTransition):
            orchestrator.confirm_order(placed.id, 30)

        assert len(notifier.confirmations) == 1
        assert repo.orders[placed.id].status == OrderStatus.PENDING

    def test_email_failure_is_a_partial_success(self, orchestrator, repo, notifier, placed, published):
        notifier.fail = True

        result = orchestrator.confirm_order(placed.id, 30)

        assert not result.notification_sent
        assert isinstance(result.notification_error, NotificationFailed)
        assert result.notification_error.order_id == placed.id
        assert result.notification_error.kind == NotificationKind.CONFIRMATION
        assert repo.orders[placed.id].status == OrderStatus.PENDING
        assert published[-1] == OrderConfirmed(result.order, notification_sent=False)

    def test_status_write_failure_sends_nothing(self, orchestrator, repo, notifier, placed):
        repo.fail_update = True

        with pytest.raises(PersistenceFailed):
            orchestrator.confirm_order(placed.id, 30)

        assert notifier.confirmations == []
        assert repo.orders[placed.id].status == OrderStatus.AWAITING_CONFIRMATION

    def test_losing_the_race_is_an_invalid_transition(self, orchestrator, repo, notifier, placed):
        def someone_else_declines(store):
            store.orders[placed.id] = replace(store.orders[placed.id], status=OrderStatus.CANCELLED)

        repo.before_update = someone_else_declines

        with pytest.raises(InvalidTransition):
            orchestrator.confirm_order(placed.id, 30)

        assert notifier.confirmations == []
        assert repo.update_calls[0][1] == frozenset({OrderStatus.AWAITING_CONFIRMATION})

    def test_unknown_order(self, orchestrator):
        with pytest.raises(NotFound):
            orchestrator.confirm_order(404, 30)

    def test_default_minutes_for_delivery_and_pickup(self, orchestrator, notifier, customer, placed):
        pickup = orchestrator.create_order(customer, [margherita()], OrderType.PICKUP)

        assert orchestrator.confirm_order(placed.id).order.estimated_minutes == 40
        assert orchestrator.confirm_order(pickup.id).order.estimated_minutes == 15
        assert [label for _, label in notifier.confirmations] == ["40 Minuten", "15 Minuten"]


class TestDeclineOrder:
    def test_decline_cancels_and_emails(self, orchestrator, repo, notifier, placed, published):
        result = orchestrator.decline_order(placed.id)

        assert result.notification_sent
        assert repo.orders[placed.id].status == OrderStatus.CANCELLED
        assert notifier.cancellations == [result.order]
        assert published[-1] == OrderDeclined(result.order, notification_sent=True)

    def test_decline_after_confirm_fails_and_keeps_status(self, orchestrator, repo, notifier, placed):
        orchestrator.confirm_order(placed.id, 30)

        with pytest.raises(InvalidTransition):
            orchestrator.decline_order(placed.id)

        assert repo.orders[placed.id].status == OrderStatus.PENDING
        assert notifier.cancellations == []

    def test_decline_email_failure_is_reported(self, orchestrator, repo, notifier, placed):
        notifier.fail = True

        result = orchestrator.decline_order(placed.id)

        assert result.notification_error.kind == NotificationKind.CANCELLATION
        assert repo.orders[placed.id].status == OrderStatus.CANCELLED


class TestUpdateStatus:
    def test_admin_walks_the_order_through(self, orchestrator, repo, notifier, placed):
        orchestrator.confirm_order(placed.id, 30)
        for status in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED):
            assert orchestrator.update_status(placed.id, status).status == status

        assert repo.orders[placed.id].status == OrderStatus.DELIVERED
        assert len(notifier.confirmations) == 1

    def test_override_from_awaiting_sends_no_email(self, orchestrator, repo, notifier, placed, published):
        order = orchestrator.update_status(placed.id, OrderStatus.DELIVERED)

        assert order.status == OrderStatus.DELIVERED
        assert notifier.confirmations == [] and notifier.cancellations == []
        assert published[-1] == OrderStatusChanged(order, previous_status=OrderStatus.AWAITING_CONFIRMATION)

    def test_admin_cancel_sends_no_email(self, orchestrator, repo, notifier, placed):
        orchestrator.confirm_order(placed.id, 30)
        orchestrator.update_status(placed.id, OrderStatus.CANCELLED)

        assert repo.orders[placed.id].status == OrderStatus.CANCELLED
        assert notifier.cancellations == []

    def test_cancelled_orders_stay_cancelled(self, orchestrator, placed):
        orchestrator.decline_order(placed.id)

        with pytest.raises(InvalidTransition):
            orchestrator.update_status(placed.id, OrderStatus.PREPARING)

    def test_cannot_move_back_to_awaiting(self, orchestrator, placed):
        with pytest.raises(InvalidTransition):
            orchestrator.update_status(placed.id, OrderStatus.AWAITING_CONFIRMATION)


class TestDeleteOrder:
    def test_delete_removes_the_aggregate(self, orchestrator, repo, placed, published):
        orchestrator.delete_order(placed.id)

        assert placed.id not in repo.orders
        assert published[-1] == OrderDeleted(placed)

    def test_delete_unknown_order(self, orchestrator):
        with pytest.raises(NotFound):
            orchestrator.delete_order(999)

    def test_zero_rows_affected_is_not_found(self, orchestrator, repo, placed, published):
        repo.report_zero_deleted = True

        with pytest.raises(NotFound):
            orchestrator.delete_order(placed.id)
        assert not any(isinstance(e, OrderDeleted) for e in published)


class TestRetryNotification:
    def test_resend_confirmation_after_failure(self, orchestrator, notifier, placed, published):
        notifier.fail = True
        failed = orchestrator.confirm_order(placed.id, 30).notification_error
        notifier.fail = False

        orchestrator.retry_notification(failed.order_id, failed.kind)

        assert [label for _, label in notifier.confirmations] == ["30 Minuten"]
        assert isinstance(published[-1], NotificationResent)

    def test_resend_cancellation(self, orchestrator, notifier, placed):
        notifier.fail = True
        orchestrator.decline_order(placed.id)
        notifier.fail = False

        orchestrator.retry_notification(placed.id, "cancellation")
        assert len(notifier.cancellations) == 1

    def test_no_confirmation_for_unconfirmed_order(self, orchestrator, notifier, placed):
        with pytest.raises(InvalidTransition):
            orchestrator.retry_notification(placed.id, NotificationKind.CONFIRMATION)
        assert notifier.confirmations == []

    def test_no_cancellation_for_open_order(self, orchestrator, placed):
        with pytest.raises(InvalidTransition):
            orchestrator.retry_notification(placed.id, NotificationKind.CANCELLATION)

    def test_retry_still_failing_raises(self, orchestrator, notifier, placed):
        notifier.fail = True
        orchestrator.confirm_order(placed.id, 30)

        with pytest.raises(NotificationFailed):
            orchestrator.retry_notification(placed.id, NotificationKind.CONFIRMATION)


class TestQueries:
    def test_quote_does_not_persist(self, orchestrator, repo):
        result = orchestrator.quote([margherita(quantity=1)], OrderType.DELIVERY)

        assert result.total == Money.parse("15.40")
        assert result.remaining_for_free_delivery == Money.parse("7.10")
        assert repo.orders == {}

    def test_list_orders_newest_first(self, orchestrator, customer):
        first = orchestrator.create_order(customer, [margherita()], OrderType.DELIVERY)
        second = orchestrator.create_order(customer, [salami()], OrderType.PICKUP)

        assert [o.id for o in orchestrator.list_orders()] == [second.id, first.id]

    def test_get_order(self, orchestrator, placed):
        assert orchestrator.get_order(placed.id) == placed
        with pytest.raises(NotFound):
            orchestrator.get_order(12345)


def test_failing_observer_does_not_fail_the_command(orchestrator, events, customer, repo):
    def broken(event):
        raise RuntimeError("speaker unplugged")

    events.subscribe(OrderCreated, broken)

    order = orchestrator.create_order(customer, [margherita()], OrderType.DELIVERY)
    assert repo.orders[order.id] == order
