from unittest import mock

import pytest

from accounts.models import User
from commissions.services import CommissionService
from payments.models import PaymentTransaction
from payments.reconciliation import CurlecWebhookHandler


@pytest.fixture
def make_agent(db):
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        kwargs.setdefault("email", f"agent{counter['n']}@khholdings.test")
        kwargs.setdefault("full_name", f"Agent {counter['n']}")
        return User.objects.create_user(**kwargs)

    return _make


@pytest.fixture
def agent(make_agent):
    return make_agent()


@pytest.fixture
def make_payment(db, agent):
    def _make(user=None, **kwargs):
        kwargs.setdefault("amount_cents", 10000)
        return PaymentTransaction.objects.create(user=user or agent, **kwargs)

    return _make


@pytest.fixture
def commission_service():
    return mock.Mock(spec=CommissionService)


@pytest.fixture
def handler(commission_service):
    """Webhook handler in sandbox mode with a recording commission collaborator."""
    return CurlecWebhookHandler(commission_service=commission_service)
