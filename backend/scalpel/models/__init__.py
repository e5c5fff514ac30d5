from scalpel.models.account import Account, Plan
from scalpel.models.payment_event import PaymentEvent

__all__ = ["Account", "Plan", "PaymentEvent"]
