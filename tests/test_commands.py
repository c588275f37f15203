from io import StringIO
from unittest import mock

import pytest
from django.core.management import call_command
from django.utils import timezone

from accounts.models import User
from commissions.models import CommissionPayout
from payments.models import PaymentTransaction


def run(*args, **kwargs):
    out = StringIO()
    call_command(*args, stdout=out, **kwargs)
    return out.getvalue()


@pytest.fixture
def legacy_agents(make_agent):
    upline = make_agent(agent_code="AGT00001")
    downline = make_agent(agent_code="AGT00002", referrer_code="AGT00001")
    other = make_agent(agent_code="KH00003")
    return upline, downline, other


class TestUpdateAgentCodes:
    def test_rewrites_codes_and_referrer_links(self, legacy_agents):
        upline, downline, other = legacy_agents

        output = run("update_agent_codes")

        assert "Successfully updated 2 agent codes from AGT to KH" in output
        assert list(User.objects.order_by("id").values_list("agent_code", "referrer_code")) == [
            ("KH00001", None),
            ("KH00002", "KH00001"),
            ("KH00003", None),
        ]

    def test_dry_run_changes_nothing(self, legacy_agents):
        output = run("update_agent_codes", "--dry-run")

        assert "DRY RUN MODE" in output
        assert "Would update 2 agent codes" in output
        assert User.objects.filter(agent_code__startswith="AGT").count() == 2
        assert User.objects.filter(referrer_code="AGT00001").count() == 1

    def test_nothing_to_do(self, make_agent):
        make_agent(agent_code="KH00001")

        assert "No AGT codes found" in run("update_agent_codes")

    def test_custom_prefixes(self, make_agent):
        make_agent(agent_code="KH00001")

        run("update_agent_codes", "--from", "KH", "--to", "KHI")

        assert User.objects.get().agent_code == "KHI00001"


class TestRetryCommissionDisbursements:
    def test_disburses_outstanding_payments(self, make_agent, make_payment, settings):
        settings.COMMISSION_LEVEL_RATES_BPS = [1000]
        make_agent(agent_code="KH00001")
        seller = make_agent(agent_code="KH00002", referrer_code="KH00001")
        payment = make_payment(user=seller, status=PaymentTransaction.STATUS_PAID, paid_at=timezone.now())

        output = run("retry_commission_disbursements")

        assert "Disbursed commission for 1 payments" in output
        assert CommissionPayout.objects.get(payment=payment).amount_cents == 1000
        payment.refresh_from_db()
        assert payment.commission_disbursed_at is not None

    def test_reports_failures(self, make_payment):
        make_payment(status=PaymentTransaction.STATUS_PAID, paid_at=timezone.now())

        with mock.patch("commissions.services.CommissionService.disburse_for_payment", side_effect=RuntimeError("x")):
            output = run("retry_commission_disbursements")

        assert "Disbursed commission for 0 payments" in output
        assert "1 payments failed again" in output
