"""Processed payment-webhook deliveries, keyed by the provider's event id."""
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, Uuid, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from scalpel.db import Base


class PaymentEvent(Base):
    __tablename__ = "payment_events"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    event: Mapped[str] = mapped_column(String(50))
    account_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("accounts.id"), nullable=True)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
