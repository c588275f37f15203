import logging
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from utils.notify import create_payment_notification
from .models import PaymentEvent

logger = logging.getLogger(__name__)


def _deliver_payment_confirmed(event):
	data = event.payload
	create_payment_notification(
		data["agent_id"],
		Decimal(data["amount"]),
		data.get("status", "completed"),
		data.get("provider", "Curlec"),
		event.payment_id,
	)


EVENT_HANDLERS = {
	PaymentEvent.EVENT_PAYMENT_CONFIRMED: _deliver_payment_confirmed,
}


def dispatch_event(event_id):
	"""
	Deliver one outbox event. Returns True when it was delivered by this call.

	Delivery failures are logged and stored on the event for the next
	dispatch run; they never propagate.
	"""
	with transaction.atomic():
		event = (
			PaymentEvent.objects.select_for_update(skip_locked=True)
			.filter(pk=event_id, delivered_at__isnull=True)
			.first()
		)
		if event is None:
			return False

		handler = EVENT_HANDLERS.get(event.event_type)
		if handler is None:
			logger.error(f"No handler for payment event {event.event_type} (id={event.pk})")
			PaymentEvent.objects.filter(pk=event.pk).update(
				attempts=F("attempts") + 1,
				last_error=f"No handler for {event.event_type}",
			)
			return False

		try:
			with transaction.atomic():
				handler(event)
		except Exception as e:
			logger.exception(f"Failed to deliver {event.event_type} for payment {event.payment_id}: {e}")
			PaymentEvent.objects.filter(pk=event.pk).update(
				attempts=F("attempts") + 1,
				last_error=str(e)[:2000],
			)
			return False

		PaymentEvent.objects.filter(pk=event.pk).update(
			attempts=F("attempts") + 1,
			last_error="",
			delivered_at=timezone.now(),
		)
	return True


def dispatch_pending_events(limit=100, max_attempts=10):
	"""Retry undelivered events, oldest first. Returns the number delivered."""
	pending_ids = list(
		PaymentEvent.objects.filter(delivered_at__isnull=True, attempts__lt=max_attempts)
		.order_by("created_at", "id")
		.values_list("id", flat=True)[:limit]
	)
	delivered = 0
	for event_id in pending_ids:
		try:
			if dispatch_event(event_id):
				delivered += 1
		except DatabaseError as e:
			logger.exception(f"Could not dispatch payment event {event_id}: {e}")
	return delivered
