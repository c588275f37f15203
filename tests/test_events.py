from io import StringIO
from unittest import mock

import pytest
from django.core.management import call_command
from django.utils import timezone

from notifications.models import Notification
from payments.events import dispatch_event, dispatch_pending_events
from payments.models import PaymentEvent, PaymentTransaction


@pytest.fixture
def confirmed_event(make_payment, agent):
    payment = make_payment(external_ref="ORD-1", status=PaymentTransaction.STATUS_PAID, paid_at=timezone.now())
    return PaymentEvent.objects.create(
        payment=payment,
        event_type=PaymentEvent.EVENT_PAYMENT_CONFIRMED,
        payload={
            "agent_id": agent.pk,
            "amount": "100.00",
            "status": "completed",
            "provider": "Curlec",
            "payment_id": payment.pk,
        },
    )


def test_dispatch_creates_notification(confirmed_event, agent):
    assert dispatch_event(confirmed_event.pk) is True

    notification = Notification.objects.get(user=agent)
    assert notification.title == "Payment received"
    assert notification.message == "Your payment of 100.00 via Curlec is completed."
    assert notification.meta_data == {
        "payment_id": confirmed_event.payment_id,
        "amount": "100.00",
        "status": "completed",
        "provider": "Curlec",
    }
    confirmed_event.refresh_from_db()
    assert confirmed_event.delivered_at is not None
    assert confirmed_event.attempts == 1


def test_delivered_event_is_not_sent_again(confirmed_event):
    dispatch_event(confirmed_event.pk)

    assert dispatch_event(confirmed_event.pk) is False
    assert Notification.objects.count() == 1


def test_push_reaches_the_agent_group(confirmed_event, agent):
    with mock.patch("utils.notify.async_to_sync") as async_to_sync:
        dispatch_event(confirmed_event.pk)

    group, message = async_to_sync.return_value.call_args.args
    assert group == f"notifications_{agent.pk}"
    assert message["type"] == "payment_notification"
    assert message["event_type"] == "payment.completed"


def test_failed_delivery_is_recorded(confirmed_event):
    with mock.patch("payments.events.create_payment_notification", side_effect=RuntimeError("channel down")):
        assert dispatch_event(confirmed_event.pk) is False

    confirmed_event.refresh_from_db()
    assert confirmed_event.delivered_at is None
    assert confirmed_event.attempts == 1
    assert confirmed_event.last_error == "channel down"
    assert not Notification.objects.exists()


def test_unknown_event_type_is_not_delivered(confirmed_event):
    PaymentEvent.objects.filter(pk=confirmed_event.pk).update(event_type="payment.mystery")

    assert dispatch_event(confirmed_event.pk) is False
    confirmed_event.refresh_from_db()
    assert "No handler" in confirmed_event.last_error


def test_dispatch_pending_respects_max_attempts(confirmed_event):
    PaymentEvent.objects.filter(pk=confirmed_event.pk).update(attempts=10)

    assert dispatch_pending_events(max_attempts=10) == 0
    assert dispatch_pending_events(max_attempts=11) == 1


def test_dispatch_command_reports(confirmed_event):
    out = StringIO()
    call_command("dispatch_payment_events", stdout=out)

    assert "Delivered 1 payment events" in out.getvalue()
    confirmed_event.refresh_from_db()
    assert confirmed_event.delivered_at is not None
