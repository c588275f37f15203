# utils/notify.py
from decimal import Decimal

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

from notifications.consumers import notification_group

# ---------- internal helpers ----------

def _group_by_user_id(notifications):
    by_user = {}
    for n in notifications:
        by_user.setdefault(n.user_id, []).append(n)
    return by_user


def _serialize_notification(n):
    """Shape pushed over the websocket and returned by the API."""
    return {
        "id": n.id,
        "event_type": n.event_type,
        "title": n.title,
        "message": n.message,
        "is_read": n.is_read,
        "created_at": n.created_at.isoformat() if n.created_at else timezone.now().isoformat(),
        "meta_data": n.meta_data,
    }


def _store_notifications_in_db(user_ids, payload):
    from accounts.models import User
    from notifications.models import Notification

    recipients = User.objects.filter(id__in=user_ids)

    return [
        Notification.objects.create(
            user=r,
            event_type=payload.get("event", "notification"),
            title=payload.get("title", "Notification"),
            message=payload.get("message", ""),
            meta_data=payload.get("meta", {}) or {},
        )
        for r in recipients
    ]

# ---------- public dispatchers ----------

def notify_users(user_ids, payload, event_type="notification"):
    """Store one notification per recipient and push it to their websocket group."""
    channel_layer = get_channel_layer()
    created_notifications = _store_notifications_in_db(user_ids, payload)

    by_user = _group_by_user_id(created_notifications)
    for uid, notes in by_user.items():
        for n in notes:
            data = _serialize_notification(n)
            async_to_sync(channel_layer.group_send)(notification_group(uid), {"type": event_type, **data})

    return created_notifications


def create_payment_notification(agent_id, amount, status, provider, payment_id):
    """
    Tell an agent that one of their payments went through.

    amount is in major currency units. Errors propagate; callers treat this
    as best-effort and log failures themselves.
    """
    amount = Decimal(amount).quantize(Decimal("0.01"))
    payload = {
        "event": f"payment.{status}",
        "title": "Payment received" if status == "completed" else f"Payment {status}",
        "message": f"Your payment of {amount} via {provider} is {status}.",
        "meta": {
            "payment_id": payment_id,
            "amount": str(amount),
            "status": status,
            "provider": provider,
        },
    }
    return notify_users([agent_id], payload, "payment_notification")
