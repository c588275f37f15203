# utils/curlec.py
import hashlib
import hmac
import json
import logging
from datetime import timedelta

import requests
from django.conf import settings
from django.utils import timezone

from payments.models import GatewayRecord
from utils.gateway_audit import record_gateway_interaction

logger = logging.getLogger(__name__)


class CurlecPaymentError(Exception):
    """The gateway answered with a non-success status, or did not answer in time."""

    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


INTERVAL_PERIODS = {
    "monthly": "monthly",
    "quarterly": "quarterly",
    "semi_annually": "half_yearly",
    "annually": "yearly",
}

INTERVAL_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "semi_annually": 6,
    "annually": 12,
}


def canonical_payload(payload) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def interval_amount_cents(annual_price_cents: int, interval: str) -> int:
    """Price of one billing period, derived from the annual plan price."""
    months = INTERVAL_MONTHS.get(interval, 1)
    if months == 12:
        return annual_price_cents
    return annual_price_cents * months // 12


class CurlecClient:
    def __init__(self, base_url=None, key_id=None, key_secret=None, sandbox=None, timeout=None, currency=None):
        self.base_url = (base_url or settings.CURLEC_BASE_URL).rstrip("/")
        self.key_id = key_id if key_id is not None else settings.CURLEC_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.CURLEC_KEY_SECRET
        self.sandbox = settings.CURLEC_SANDBOX if sandbox is None else sandbox
        self.timeout = timeout or settings.CURLEC_TIMEOUT
        self.currency = currency or settings.CURLEC_CURRENCY

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    # ----- webhooks -----

    def verify_webhook(self, payload, signature=None) -> bool:
        # Sandbox or unsigned deliveries are accepted to ease local testing
        if self.sandbox or not signature:
            return True
        return hmac.compare_digest(self.sign(payload), str(signature))

    def sign(self, payload) -> str:
        """HMAC-SHA256 hex digest of the canonical payload, keyed with the key secret."""
        return hmac.new(
            (self.key_secret or "").encode("utf-8"),
            canonical_payload(payload),
            hashlib.sha256,
        ).hexdigest()

    # ----- outbound -----

    def create_subscription_plan(self, plan, interval="monthly"):
        payload = {
            "item": {
                "name": plan.name or "Medical Insurance Plan",
                "description": plan.description or "Medical Insurance Plan",
                "amount": interval_amount_cents(plan.price_cents, interval),
                "currency": self.currency,
            },
            "period": INTERVAL_PERIODS.get(interval, "monthly"),
            "interval": 1,
            "notes": {
                "plan_id": plan.id,
                "plan_slug": plan.slug or "medical",
            },
        }

        if not self.is_configured:
            return {
                "id": f"plan_MOCK_{plan.id}",
                "item": payload["item"],
                "period": payload["period"],
                "interval": payload["interval"],
                "status": "active",
            }

        return self._make_request("POST", "/plans", payload)

    def create_subscription(self, payment, plan_id):
        now = timezone.now()
        payload = {
            "plan_id": plan_id,
            "total_count": 12,
            "quantity": 1,
            "customer_notify": 1,
            # Start in a minute so the gateway does not reject a past start
            "start_at": int((now + timedelta(minutes=1)).timestamp()),
            "expire_by": int((now + timedelta(days=365)).timestamp()),
            "notes": self._payment_notes(payment),
        }

        if not self.is_configured:
            return {
                "id": f"sub_MOCK_{payment.id}",
                "plan_id": plan_id,
                "status": "created",
                "current_start": int(now.timestamp()),
                "current_end": int((now + timedelta(days=30)).timestamp()),
                "ended_at": None,
                "quantity": 1,
                "notes": payload["notes"],
            }

        return self._make_request("POST", "/subscriptions", payload)

    def create_order(self, payment):
        payload = {
            "amount": payment.amount_cents,
            "currency": self.currency,
            "receipt": f"KHI-{payment.id}",
            "notes": self._payment_notes(payment),
        }

        if not self.is_configured:
            return {
                "external_id": f"MOCK-{payment.id}",
                "amount": payload["amount"],
                "currency": payload["currency"],
                "checkout_url": None,
            }

        response = self._make_request("POST", "/orders", payload)
        return {
            "external_id": response["id"],
            "amount": response.get("amount", payload["amount"]),
            "currency": response.get("currency", payload["currency"]),
            "checkout_url": response.get("checkout_url"),
        }

    @staticmethod
    def _payment_notes(payment):
        return {
            "payment_id": payment.id,
            "user_id": payment.user_id,
            "plan_id": payment.plan_id,
        }

    def _make_request(self, method, endpoint, data):
        url = f"{self.base_url}{endpoint}"
        logger.info(f"Making Curlec API request {method} {url} key_id={self.key_id}")

        try:
            response = requests.request(
                method,
                url,
                json=data,
                auth=(self.key_id, self.key_secret),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Curlec API request to {endpoint} failed: {e}")
            record_gateway_interaction(
                direction=GatewayRecord.DIRECTION_REQUEST,
                payload=data,
                response={"error": str(e)},
            )
            raise CurlecPaymentError(f"Curlec payment failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        record_gateway_interaction(
            direction=GatewayRecord.DIRECTION_REQUEST,
            payload=data,
            external_ref=body.get("id") if isinstance(body, dict) else None,
            status_code=response.status_code,
            response=body if body is not None else {"text": response.text},
        )

        if not response.ok:
            logger.error(f"Curlec API error status={response.status_code} body={response.text}")
            raise CurlecPaymentError(
                f"Curlec payment failed: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        return body if isinstance(body, dict) else {}
