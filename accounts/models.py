# accounts/models.py
from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.db import models, transaction
from django.utils import timezone


class UserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email required")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        return self.create_user(email, password, **extra_fields)


class AgentCodeImmutable(Exception):
    """Raised when something tries to change an agent code that is already set."""


class User(AbstractBaseUser, PermissionsMixin):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("active", "Active"),
        ("suspended", "Suspended"),
    ]

    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(max_length=20, blank=True, null=True)

    # Assigned lazily on the first confirmed payment, never changed afterwards
    agent_code = models.CharField(max_length=20, unique=True, null=True, blank=True)
    # agent_code of the agent who referred this one
    referrer_code = models.CharField(max_length=20, null=True, blank=True, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    mlm_activation_date = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    def __str__(self):
        return f"{self.email} ({self.agent_code or 'no code'})"

    def referrer(self):
        """Return the referring agent, or None when the code is unknown."""
        if not self.referrer_code:
            return None
        return User.objects.filter(agent_code=self.referrer_code).first()

    def assign_agent_code(self):
        """
        Give this agent the next code from the sequence and activate them.

        Must run inside a transaction that holds the row lock on this user;
        the sequence row lock serializes concurrent assignments.
        Returns the code (the existing one when already assigned).
        """
        if self.agent_code:
            return self.agent_code

        now = timezone.now()
        self.agent_code = AgentCodeSequence.next_code()
        self.status = "active"
        self.mlm_activation_date = now
        self.save(update_fields=["agent_code", "status", "mlm_activation_date"])
        return self.agent_code

    def save(self, *args, **kwargs):
        """Refuse to overwrite an agent code that is already stored."""
        if self.pk and self.agent_code is not None:
            stored = User.objects.filter(pk=self.pk).values_list("agent_code", flat=True).first()
            if stored and stored != self.agent_code:
                raise AgentCodeImmutable(f"Agent code {stored} cannot be changed to {self.agent_code}")
        super().save(*args, **kwargs)


class AgentCodeSequence(models.Model):
    """
    Counter row per agent-code prefix.

    The row is locked with SELECT ... FOR UPDATE and advanced with a
    compare-and-set on last_value, so two concurrent first payments never
    claim the same number even where the database ignores row locks.
    """
    prefix = models.CharField(max_length=10, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.prefix}:{self.last_value}"

    @staticmethod
    def format_code(prefix, value, digits=None):
        digits = digits or settings.AGENT_CODE_DIGITS
        return f"{prefix}{str(value).zfill(digits)}"

    @classmethod
    def _locked(cls, prefix):
        sequence = cls.objects.select_for_update().filter(prefix=prefix).first()
        if sequence is not None:
            return sequence
        # First use of this prefix: seed from agents that already carry a code
        cls.objects.get_or_create(
            prefix=prefix,
            defaults={"last_value": User.objects.filter(agent_code__isnull=False).count()},
        )
        return cls.objects.select_for_update().get(prefix=prefix)

    @classmethod
    def _claim(cls, sequence_id, seen_value):
        """Move the counter from seen_value to the next number. False when another caller moved it first."""
        return bool(
            cls.objects.filter(pk=sequence_id, last_value=seen_value).update(
                last_value=seen_value + 1, updated_at=timezone.now()
            )
        )

    @classmethod
    def next_code(cls, prefix=None):
        prefix = prefix or settings.AGENT_CODE_PREFIX

        with transaction.atomic():
            sequence = cls._locked(prefix)
            while True:
                seen = sequence.last_value
                if not cls._claim(sequence.pk, seen):
                    sequence.refresh_from_db(fields=["last_value"])
                    continue
                sequence.last_value = seen + 1
                code = cls.format_code(prefix, sequence.last_value)
                # Imported or hand-assigned codes may already occupy a number
                if not User.objects.filter(agent_code=code).exists():
                    return code
