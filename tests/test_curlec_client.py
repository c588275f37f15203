from unittest import mock

import pytest
import requests

from payments.models import GatewayRecord, InsurancePlan
from utils.curlec import CurlecClient, CurlecPaymentError, interval_amount_cents


def _response(status_code=200, body=None, text=""):
    response = mock.Mock(status_code=status_code, ok=200 <= status_code < 300, text=text)
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def live_client():
    return CurlecClient(
        base_url="https://api.curlec.test",
        key_id="rzp_key",
        key_secret="rzp_secret",
        sandbox=False,
        timeout=5,
    )


@pytest.fixture
def plan(db):
    return InsurancePlan.objects.create(name="Medical Basic", slug="medical-basic", price_cents=120000)


class TestVerifyWebhook:
    payload = {"order_id": "ORD-1", "status": "paid"}

    def test_sandbox_accepts_anything(self):
        client = CurlecClient(key_secret="s3cret", sandbox=True)
        assert client.verify_webhook(self.payload, "not-a-signature")

    def test_missing_signature_is_accepted(self):
        client = CurlecClient(key_secret="s3cret", sandbox=False)
        assert client.verify_webhook(self.payload, None)
        assert client.verify_webhook(self.payload, "")

    def test_matching_signature_is_accepted(self):
        client = CurlecClient(key_secret="s3cret", sandbox=False)
        assert client.verify_webhook(self.payload, client.sign(self.payload))

    def test_tampered_payload_is_rejected(self):
        client = CurlecClient(key_secret="s3cret", sandbox=False)
        signature = client.sign(self.payload)

        assert not client.verify_webhook({"order_id": "ORD-1", "status": "failed"}, signature)

    def test_signature_from_another_secret_is_rejected(self):
        ours = CurlecClient(key_secret="s3cret", sandbox=False)
        theirs = CurlecClient(key_secret="other", sandbox=False)

        assert not ours.verify_webhook(self.payload, theirs.sign(self.payload))


def test_interval_amounts_derive_from_annual_price():
    assert interval_amount_cents(120000, "monthly") == 10000
    assert interval_amount_cents(120000, "quarterly") == 30000
    assert interval_amount_cents(120000, "semi_annually") == 60000
    assert interval_amount_cents(120000, "annually") == 120000
    assert interval_amount_cents(100000, "monthly") == 8333


class TestMockMode:
    def test_create_order_returns_mock_without_calling_out(self, make_payment):
        payment = make_payment(amount_cents=25000)

        with mock.patch("utils.curlec.requests.request") as request:
            result = CurlecClient(key_id="", key_secret="").create_order(payment)

        request.assert_not_called()
        assert result == {
            "external_id": f"MOCK-{payment.id}",
            "amount": 25000,
            "currency": "MYR",
            "checkout_url": None,
        }
        assert not GatewayRecord.objects.exists()

    def test_create_plan_and_subscription_mocks(self, plan, make_payment):
        client = CurlecClient(key_id="", key_secret="")
        payment = make_payment(plan=plan)

        gateway_plan = client.create_subscription_plan(plan, "quarterly")
        subscription = client.create_subscription(payment, gateway_plan["id"])

        assert gateway_plan["id"] == f"plan_MOCK_{plan.id}"
        assert gateway_plan["period"] == "quarterly"
        assert gateway_plan["item"]["amount"] == 30000
        assert subscription["id"] == f"sub_MOCK_{payment.id}"
        assert subscription["plan_id"] == gateway_plan["id"]
        assert subscription["notes"] == {"payment_id": payment.id, "user_id": payment.user_id, "plan_id": plan.id}


class TestLiveRequests:
    def test_create_order_posts_and_normalizes(self, live_client, make_payment):
        payment = make_payment(amount_cents=10000)
        body = {"id": "order_ABC", "amount": 10000, "currency": "MYR", "checkout_url": "https://pay.test/abc"}

        with mock.patch("utils.curlec.requests.request", return_value=_response(200, body)) as request:
            result = live_client.create_order(payment)

        assert result == {
            "external_id": "order_ABC",
            "amount": 10000,
            "currency": "MYR",
            "checkout_url": "https://pay.test/abc",
        }
        args, kwargs = request.call_args
        assert args == ("POST", "https://api.curlec.test/orders")
        assert kwargs["auth"] == ("rzp_key", "rzp_secret")
        assert kwargs["timeout"] == 5
        assert kwargs["json"]["receipt"] == f"KHI-{payment.id}"

        record = GatewayRecord.objects.get()
        assert record.direction == GatewayRecord.DIRECTION_REQUEST
        assert record.external_ref == "order_ABC"
        assert record.status_code == 200
        assert record.payload["amount"] == 10000

    def test_plan_uses_half_yearly_period(self, live_client, plan):
        with mock.patch("utils.curlec.requests.request", return_value=_response(200, {"id": "plan_1"})) as request:
            live_client.create_subscription_plan(plan, "semi_annually")

        sent = request.call_args.kwargs["json"]
        assert request.call_args.args[1] == "https://api.curlec.test/plans"
        assert sent["period"] == "half_yearly"
        assert sent["item"]["amount"] == 60000
        assert sent["notes"] == {"plan_id": plan.id, "plan_slug": "medical-basic"}

    def test_error_response_is_audited_and_raised(self, live_client, make_payment):
        payment = make_payment()
        failing = _response(400, {"error": {"description": "bad amount"}}, text='{"error": "bad amount"}')

        with mock.patch("utils.curlec.requests.request", return_value=failing):
            with pytest.raises(CurlecPaymentError) as excinfo:
                live_client.create_order(payment)

        assert excinfo.value.status_code == 400
        record = GatewayRecord.objects.get()
        assert record.status_code == 400
        assert record.response == {"error": {"description": "bad amount"}}
        payment.refresh_from_db()
        assert payment.external_ref is None

    def test_timeout_is_a_failure(self, live_client, make_payment):
        payment = make_payment()

        with mock.patch("utils.curlec.requests.request", side_effect=requests.Timeout("read timed out")):
            with pytest.raises(CurlecPaymentError):
                live_client.create_order(payment)

        record = GatewayRecord.objects.get()
        assert record.status_code is None
        assert "timed out" in record.response["error"]
