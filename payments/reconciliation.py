"""
Curlec webhook reconciliation.

Turns a gateway notification into at most one payment state transition:

1. verify the signature and validate the payload
2. append the gateway record (every delivery, whatever happens next)
3. find the payment by external_ref, falling back to meta.order_id
4. skip duplicates and stale signals for payments already in a final state
5. paid: lock the row, mark it paid, assign the agent code and write the
   outbox event in one transaction; disburse commission after commit
6. failed: pending -> failed with a conditional update

Malformed, orphan, duplicate and stale deliveries are logged and returned as
a WebhookOutcome; only storage errors escape, so the gateway retries.
"""
import enum
import logging
from collections.abc import Mapping

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from commissions.services import CommissionService
from utils.curlec import CurlecClient
from utils.gateway_audit import record_gateway_interaction
from .events import dispatch_event
from .models import GatewayRecord, PaymentEvent, PaymentTransaction

logger = logging.getLogger(__name__)

PROVIDER_LABEL = "Curlec"


class WebhookOutcome(enum.Enum):
	CONFIRMED = "confirmed"
	FAILED = "failed"
	DUPLICATE = "duplicate"
	STALE = "stale"
	ORPHAN = "orphan"
	MALFORMED = "malformed"
	INVALID_SIGNATURE = "invalid_signature"
	IGNORED = "ignored"


class CurlecWebhookHandler:
	def __init__(self, client=None, commission_service=None):
		self.client = client or CurlecClient()
		self.commission_service = commission_service or CommissionService()

	def handle(self, payload, signature=None):
		if not isinstance(payload, Mapping):
			# Valid JSON that is not an object: audit it as-is and stop
			record_gateway_interaction(
				direction=GatewayRecord.DIRECTION_WEBHOOK,
				payload=payload,
				status_code=422,
			)
			logger.warning(f"Invalid Curlec webhook payload, expected an object: {payload!r}")
			return WebhookOutcome.MALFORMED

		payload = dict(payload)
		order_id = payload.get("order_id")
		status = str(payload.get("status") or "").strip().lower()

		signature_ok = self.client.verify_webhook(payload, signature)
		if not signature_ok:
			status_code = 401
		elif not order_id or not status:
			status_code = 422
		else:
			status_code = 200

		record_gateway_interaction(
			direction=GatewayRecord.DIRECTION_WEBHOOK,
			payload=payload,
			external_ref=order_id,
			status_code=status_code,
		)

		if not signature_ok:
			logger.warning(f"Rejected Curlec webhook with invalid signature (order_id={order_id})")
			return WebhookOutcome.INVALID_SIGNATURE

		if not order_id or not status:
			logger.warning(f"Invalid Curlec webhook payload: {payload}")
			return WebhookOutcome.MALFORMED

		order_id = str(order_id)
		payment = PaymentTransaction.objects.for_gateway_order(order_id)
		if payment is None:
			logger.warning(f"Payment not found for Curlec order {order_id}")
			return WebhookOutcome.ORPHAN

		if status == PaymentTransaction.STATUS_PAID:
			return self._handle_paid(payment, order_id)
		if status == PaymentTransaction.STATUS_FAILED:
			return self._handle_failed(payment, order_id)

		logger.info(f"Ignoring Curlec webhook status '{status}' for order {order_id}")
		return WebhookOutcome.IGNORED

	# ----- paid -----

	def _handle_paid(self, payment, order_id):
		if payment.status == PaymentTransaction.STATUS_PAID:
			logger.info(f"Payment already processed, skipping duplicate webhook (payment_id={payment.pk}, order_id={order_id})")
			return WebhookOutcome.DUPLICATE
		if payment.status == PaymentTransaction.STATUS_FAILED:
			logger.warning(f"Ignoring paid webhook for failed payment {payment.pk} (order_id={order_id})")
			return WebhookOutcome.STALE

		confirmed = self._confirm_paid(payment.pk)
		if confirmed is None:
			return WebhookOutcome.DUPLICATE

		self._disburse(confirmed)
		return WebhookOutcome.CONFIRMED

	def _confirm_paid(self, payment_id):
		"""Apply pending -> paid under row locks. Returns None when another delivery got there first."""
		User = get_user_model()

		with transaction.atomic():
			payment = PaymentTransaction.objects.select_for_update().get(pk=payment_id)
			if payment.is_terminal:
				logger.info(f"Payment {payment.pk} already {payment.status} in another request")
				return None

			payment.status = PaymentTransaction.STATUS_PAID
			payment.paid_at = timezone.now()
			payment.save(update_fields=["status", "paid_at", "updated_at"])

			agent = User.objects.select_for_update().get(pk=payment.user_id)
			agent.assign_agent_code()
			payment.user = agent

			event = PaymentEvent.objects.create(
				payment=payment,
				event_type=PaymentEvent.EVENT_PAYMENT_CONFIRMED,
				payload={
					"agent_id": agent.pk,
					"amount": str(payment.amount_major_units),
					"status": "completed",
					"provider": PROVIDER_LABEL,
					"payment_id": payment.pk,
				},
			)
			# robust: a failed dispatch stays on the outbox for dispatch_payment_events
			transaction.on_commit(lambda: dispatch_event(event.pk), robust=True)

			logger.info(
				f"Payment verification completed via webhook: payment_id={payment.pk} "
				f"agent_id={agent.pk} agent_code={agent.agent_code} referrer_code={agent.referrer_code}"
			)
		return payment

	def _disburse(self, payment):
		# Runs after the paid status is committed; a failure leaves
		# commission_disbursed_at empty for retry_commission_disbursements.
		try:
			self.commission_service.disburse_for_payment(payment)
		except Exception as e:
			logger.exception(f"Commission disbursement failed for payment {payment.pk}: {e}")

	# ----- failed -----

	def _handle_failed(self, payment, order_id):
		if payment.status == PaymentTransaction.STATUS_FAILED:
			logger.info(f"Payment {payment.pk} already failed, skipping duplicate webhook")
			return WebhookOutcome.DUPLICATE
		if payment.status == PaymentTransaction.STATUS_PAID:
			logger.warning(f"Ignoring failed webhook for paid payment {payment.pk} (order_id={order_id})")
			return WebhookOutcome.STALE

		updated = PaymentTransaction.objects.filter(
			pk=payment.pk, status=PaymentTransaction.STATUS_PENDING
		).update(status=PaymentTransaction.STATUS_FAILED, updated_at=timezone.now())
		if not updated:
			logger.warning(f"Payment {payment.pk} left pending concurrently, failed webhook not applied")
			return WebhookOutcome.STALE

		logger.info(f"Payment marked as failed via webhook (payment_id={payment.pk}, order_id={order_id})")
		return WebhookOutcome.FAILED


def handle_curlec_webhook(payload, signature=None):
	return CurlecWebhookHandler().handle(payload, signature)
