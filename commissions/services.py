import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import AgentWallet, CommissionPayout

logger = logging.getLogger(__name__)


class CommissionService:
    """Pays the referral chain above an agent when one of their payments is confirmed."""

    def __init__(self, level_rates_bps=None):
        self.level_rates_bps = list(
            settings.COMMISSION_LEVEL_RATES_BPS if level_rates_bps is None else level_rates_bps
        )

    def upline(self, agent):
        """Referrers of agent, nearest first, capped at the number of paid levels."""
        chain = []
        seen = {agent.pk}
        current = agent
        while len(chain) < len(self.level_rates_bps):
            referrer = current.referrer()
            if referrer is None or referrer.pk in seen:
                break
            chain.append(referrer)
            seen.add(referrer.pk)
            current = referrer
        return chain

    @staticmethod
    def commission_amount(amount_cents, rate_bps):
        return amount_cents * rate_bps // 10000

    def disburse_for_payment(self, payment):
        """
        Create one payout per upline level and credit the wallets.

        Safe to call again for the same payment: levels that already have a
        payout are skipped, so retries never pay twice.
        """
        if payment.status != payment.STATUS_PAID:
            raise ValueError(f"Payment {payment.pk} is {payment.status}, only paid payments earn commission")

        created = []
        with transaction.atomic():
            for level, referrer in enumerate(self.upline(payment.user), start=1):
                rate = self.level_rates_bps[level - 1]
                amount = self.commission_amount(payment.amount_cents, rate)
                if amount <= 0:
                    continue

                payout, is_new = CommissionPayout.objects.get_or_create(
                    payment=payment,
                    level=level,
                    defaults={
                        "beneficiary": referrer,
                        "rate_bps": rate,
                        "amount_cents": amount,
                        "status": "credited",
                    },
                )
                if not is_new:
                    continue

                wallet, _ = AgentWallet.objects.get_or_create(user=referrer)
                AgentWallet.objects.filter(pk=wallet.pk).update(
                    balance_cents=F("balance_cents") + amount,
                    total_earned_cents=F("total_earned_cents") + amount,
                )
                created.append(payout)

            payment.commission_disbursed_at = timezone.now()
            payment.save(update_fields=["commission_disbursed_at", "updated_at"])

        logger.info(
            f"Commission disbursed for payment {payment.pk}: "
            f"{len(created)} payouts, {sum(p.amount_cents for p in created)} cents"
        )
        return created


def disburse_outstanding(limit=100, service=None):
    """Retry disbursement for paid payments that never got it. Returns (done, failed)."""
    from payments.models import PaymentTransaction

    service = service or CommissionService()
    payments = (
        PaymentTransaction.objects.filter(
            status=PaymentTransaction.STATUS_PAID,
            commission_disbursed_at__isnull=True,
        )
        .select_related("user")
        .order_by("paid_at", "id")[:limit]
    )

    done = failed = 0
    for payment in payments:
        try:
            service.disburse_for_payment(payment)
            done += 1
        except Exception as e:
            logger.exception(f"Commission retry failed for payment {payment.pk}: {e}")
            failed += 1
    return done, failed
