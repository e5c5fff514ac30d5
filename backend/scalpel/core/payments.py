"""Razorpay webhook payloads."""
import json
from dataclasses import dataclass
from typing import Optional

from scalpel.core.errors import InvalidInput

UPGRADE_EVENTS = frozenset({"payment.captured", "payment.authorized", "order.paid"})


@dataclass(frozen=True)
class PaymentNotification:
    event: str
    event_id: Optional[str]
    payment_id: Optional[str]
    email: Optional[str]

    @property
    def grants_pro(self) -> bool:
        return self.event in UPGRADE_EVENTS


def _dig(obj, *keys) -> dict:
    for key in keys:
        obj = obj.get(key) if isinstance(obj, dict) else None
    return obj if isinstance(obj, dict) else {}


def parse_notification(raw: bytes, event_id: Optional[str] = None) -> PaymentNotification:
    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidInput("Malformed webhook payload") from e
    if not isinstance(body, dict):
        raise InvalidInput("Malformed webhook payload")

    payment = _dig(body, "payload", "payment", "entity")
    # Razorpay sends an empty list when no notes were set
    notes = _dig(payment, "notes")
    email = notes.get("email") or notes.get("customer_email") or payment.get("email")

    return PaymentNotification(
        event=str(body.get("event") or ""),
        event_id=event_id or None,
        payment_id=payment.get("id"),
        email=email.strip().lower() if isinstance(email, str) and email.strip() else None,
    )
