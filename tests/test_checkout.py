import pytest

from payments.checkout import open_order, open_subscription
from payments.models import InsurancePlan, InvalidTransition, PaymentTransaction


@pytest.fixture
def plan(db):
    return InsurancePlan.objects.create(name="Medical Basic", slug="medical-basic", price_cents=120000)


def test_open_order_binds_the_gateway_id(make_payment):
    payment = make_payment()

    result = open_order(payment)

    assert result["external_id"] == f"MOCK-{payment.pk}"
    assert result["amount"] == 10000
    payment.refresh_from_db()
    assert payment.external_ref == f"MOCK-{payment.pk}"
    assert payment.meta["order_id"] == f"MOCK-{payment.pk}"
    assert PaymentTransaction.objects.for_gateway_order(result["external_id"]) == payment


def test_payment_cannot_be_rebound(make_payment):
    payment = make_payment(external_ref="ORD-1")

    with pytest.raises(InvalidTransition):
        open_order(payment)


def test_open_subscription(make_payment, plan):
    payment = make_payment(plan=plan, amount_cents=30000)

    subscription = open_subscription(payment, plan, interval="quarterly")

    assert subscription["id"] == f"sub_MOCK_{payment.pk}"
    assert subscription["plan_id"] == f"plan_MOCK_{plan.pk}"
    payment.refresh_from_db()
    assert payment.external_ref == subscription["id"]
