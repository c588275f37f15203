from decimal import Decimal

from django.conf import settings
from django.db import models


class InsurancePlan(models.Model):
	name = models.CharField(max_length=150)
	slug = models.SlugField(max_length=100, unique=True)
	description = models.TextField(blank=True)
	# Annual price
	price_cents = models.PositiveIntegerField()
	is_active = models.BooleanField(default=True)
	created_at = models.DateTimeField(auto_now_add=True)

	def __str__(self):
		return f"{self.name} ({self.price_cents} cents/yr)"


class InvalidTransition(Exception):
	pass


class PaymentTransactionQuerySet(models.QuerySet):
	def for_gateway_order(self, order_id):
		"""Match on external_ref first, then on the order id stored in meta."""
		payment = self.filter(external_ref=order_id).first()
		if payment is None:
			payment = self.filter(meta__order_id=order_id).order_by('id').first()
		return payment


class PaymentTransaction(models.Model):
	STATUS_PENDING = 'pending'
	STATUS_PAID = 'paid'
	STATUS_FAILED = 'failed'
	STATUS_CHOICES = [
		(STATUS_PENDING, 'Pending'),
		(STATUS_PAID, 'Paid'),
		(STATUS_FAILED, 'Failed'),
	]
	TERMINAL_STATUSES = (STATUS_PAID, STATUS_FAILED)

	user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='payment_transactions')
	plan = models.ForeignKey(InsurancePlan, on_delete=models.SET_NULL, null=True, blank=True, related_name='payment_transactions')
	amount_cents = models.PositiveIntegerField()
	currency = models.CharField(max_length=3, default='MYR')
	status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
	# Gateway order/subscription id, set once an order is opened
	external_ref = models.CharField(max_length=100, unique=True, null=True, blank=True)
	meta = models.JSONField(default=dict, blank=True)
	paid_at = models.DateTimeField(null=True, blank=True)
	commission_disbursed_at = models.DateTimeField(null=True, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	objects = PaymentTransactionQuerySet.as_manager()

	class Meta:
		indexes = [
			models.Index(fields=['status'], name='payments_pa_status_8c2f0a_idx'),
			models.Index(fields=['user', 'status'], name='payments_pa_user_id_5d7e3b_idx'),
		]

	def __str__(self):
		return f"Payment {self.pk} {self.external_ref or '-'} ({self.status})"

	@property
	def is_terminal(self):
		return self.status in self.TERMINAL_STATUSES

	@property
	def amount_major_units(self):
		return (Decimal(self.amount_cents) / 100).quantize(Decimal("0.01"))

	def attach_gateway_order(self, external_id):
		if self.external_ref and self.external_ref != external_id:
			raise InvalidTransition(f"Payment {self.pk} already bound to gateway order {self.external_ref}")
		self.external_ref = external_id
		self.meta = {**(self.meta or {}), 'order_id': external_id}
		self.save(update_fields=['external_ref', 'meta', 'updated_at'])

	def delete(self, *args, **kwargs):
		raise InvalidTransition("Payment transactions are financial records and cannot be deleted")


class GatewayRecordImmutable(Exception):
	pass


class GatewayRecord(models.Model):
	DIRECTION_REQUEST = 'request'
	DIRECTION_WEBHOOK = 'webhook'
	DIRECTION_CHOICES = [
		(DIRECTION_REQUEST, 'Request'),
		(DIRECTION_WEBHOOK, 'Webhook'),
	]

	provider = models.CharField(max_length=30)
	direction = models.CharField(max_length=10, choices=DIRECTION_CHOICES)
	external_ref = models.CharField(max_length=100, null=True, blank=True, db_index=True)
	payload = models.JSONField(default=dict)
	response = models.JSONField(null=True, blank=True)
	status_code = models.PositiveSmallIntegerField(null=True, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ['created_at', 'id']
		indexes = [
			models.Index(fields=['provider', 'direction', 'created_at'], name='payments_ga_provide_4b1e2d_idx'),
		]

	def __str__(self):
		return f"{self.provider} {self.direction} {self.external_ref or '-'} ({self.status_code})"

	def save(self, *args, **kwargs):
		if self.pk is not None:
			raise GatewayRecordImmutable("Gateway records are append-only")
		super().save(*args, **kwargs)

	def delete(self, *args, **kwargs):
		raise GatewayRecordImmutable("Gateway records are append-only")


class PaymentEvent(models.Model):
	"""Outbox row for side effects that follow a committed payment transition."""
	EVENT_PAYMENT_CONFIRMED = 'payment.confirmed'

	payment = models.ForeignKey(PaymentTransaction, on_delete=models.CASCADE, related_name='events')
	event_type = models.CharField(max_length=50)
	payload = models.JSONField(default=dict)
	attempts = models.PositiveIntegerField(default=0)
	last_error = models.TextField(blank=True, default='')
	delivered_at = models.DateTimeField(null=True, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ['created_at', 'id']
		indexes = [
			models.Index(fields=['delivered_at', 'created_at'], name='payments_pa_deliver_1a9c6e_idx'),
		]

	def __str__(self):
		return f"{self.event_type} for payment {self.payment_id}"
