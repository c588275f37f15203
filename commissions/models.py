from django.conf import settings
from django.db import models


class AgentWallet(models.Model):
    """Running commission balance of an agent."""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="wallet")
    balance_cents = models.BigIntegerField(default=0)
    total_earned_cents = models.BigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Wallet of {self.user_id}: {self.balance_cents} cents"


class CommissionPayout(models.Model):
    """Commission earned by one upline agent for one paid transaction."""
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("credited", "Credited"),
    ]

    payment = models.ForeignKey(
        "payments.PaymentTransaction",
        on_delete=models.CASCADE,
        related_name="commission_payouts"
    )
    beneficiary = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="commission_payouts"
    )
    # 1 = direct referrer
    level = models.PositiveSmallIntegerField()
    rate_bps = models.PositiveIntegerField()
    amount_cents = models.PositiveIntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["payment", "level"], name="uniq_commission_payment_level"),
        ]
        ordering = ["payment_id", "level"]

    def __str__(self):
        return f"L{self.level} {self.amount_cents} cents to {self.beneficiary_id} for payment {self.payment_id}"
