"""Account-modell: plan, kvot och inloggningsuppgifter."""
import enum
import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from scalpel.db import Base


class Plan(str, enum.Enum):
    FREE = "free"
    PRO = "pro"


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default="user")

    # Kvot
    plan: Mapped[str] = mapped_column(String(20), default=Plan.FREE.value)  # free, pro
    file_limit: Mapped[int] = mapped_column(Integer, default=0)
    files_used: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def is_pro(self) -> bool:
        return self.plan == Plan.PRO.value
