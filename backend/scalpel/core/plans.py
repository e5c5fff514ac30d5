"""
Plan/promo gate: the only code that moves an account to pro.

    free --redeem(valid code)--> pro
    pro  --redeem(any code)----> pro        (no-op, still a success)
    any  --verified payment----> pro        (replays are no-ops)

Valid codes and the pro limit are injected, never read ad hoc.
"""
import re
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scalpel.core.errors import AuthRequired, InvalidInput, PromoRejected, UpstreamFailure
from scalpel.core.payments import PaymentNotification
from scalpel.db import new_session
from scalpel.models.account import Account, Plan
from scalpel.models.payment_event import PaymentEvent

log = structlog.get_logger()

_CODE_FORMAT = re.compile(r"[A-Z0-9_-]{1,64}")


def normalise_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class PaymentOutcome:
    status: str  # upgraded, duplicate, ignored, unknown_account
    account_id: Optional[uuid.UUID] = None


class PlanGate:

    def __init__(
        self,
        valid_codes: Iterable[str],
        pro_file_limit: int,
        sessions: Callable[[], AsyncSession] = new_session,
    ):
        self._codes = frozenset(normalise_code(c) for c in valid_codes if normalise_code(c))
        self.pro_file_limit = pro_file_limit
        self._sessions = sessions

    def is_valid_code(self, code: Optional[str]) -> bool:
        return normalise_code(code) in self._codes

    def _upgrade_stmt(self, account_id: uuid.UUID):
        return (
            update(Account)
            .where(Account.id == account_id)
            .values(plan=Plan.PRO.value, file_limit=self.pro_file_limit)
            .execution_options(synchronize_session=False)
        )

    async def redeem(self, account_id: uuid.UUID, code: Optional[str]) -> bool:
        """
        Redeem a promo code. Returns True when the account was upgraded and
        False when it already was pro. Raises PromoRejected for any code that
        does not grant access; callers show one generic message for it.
        """
        code = normalise_code(code)
        if not code:
            raise InvalidInput("Code required")

        try:
            async with self._sessions() as session:
                plan = await session.scalar(select(Account.plan).where(Account.id == account_id))
                if plan is None:
                    raise AuthRequired("User not found")
                if plan == Plan.PRO.value:
                    log.info("promo_noop_already_pro", account_id=str(account_id))
                    return False
                if not _CODE_FORMAT.fullmatch(code) or code not in self._codes:
                    log.info("promo_rejected", account_id=str(account_id))
                    raise PromoRejected()
                await session.execute(self._upgrade_stmt(account_id))
                await session.commit()
        except SQLAlchemyError as e:
            log.error("promo_redeem_failed", account_id=str(account_id), error=str(e))
            raise UpstreamFailure() from e

        log.info("promo_redeemed", account_id=str(account_id))
        return True

    async def apply_payment(self, notification: PaymentNotification) -> PaymentOutcome:
        """Upgrade the account named in a verified payment notification."""
        if not notification.grants_pro:
            return PaymentOutcome("ignored")
        if not notification.email:
            log.warning("payment_without_email", event_type=notification.event, payment_id=notification.payment_id)
            return PaymentOutcome("unknown_account")

        try:
            async with self._sessions() as session:
                if notification.event_id and await session.get(PaymentEvent, notification.event_id):
                    log.info("payment_duplicate", event_id=notification.event_id)
                    return PaymentOutcome("duplicate")

                account_id = await session.scalar(select(Account.id).where(Account.email == notification.email))
                if account_id is None:
                    log.warning("payment_unknown_account", event_type=notification.event, payment_id=notification.payment_id)
                    return PaymentOutcome("unknown_account")

                await session.execute(self._upgrade_stmt(account_id))
                if notification.event_id:
                    session.add(PaymentEvent(id=notification.event_id, event=notification.event, account_id=account_id))
                try:
                    await session.commit()
                except IntegrityError:
                    # the same delivery was recorded concurrently
                    await session.rollback()
                    return PaymentOutcome("duplicate", account_id)
        except SQLAlchemyError as e:
            log.error("payment_apply_failed", event_type=notification.event, error=str(e))
            raise UpstreamFailure() from e

        log.info("payment_upgraded", account_id=str(account_id), event_type=notification.event)
        return PaymentOutcome("upgraded", account_id)


def get_plan_gate() -> PlanGate:
    from scalpel.config import settings
    return PlanGate(settings.promo_codes, settings.PRO_FILE_LIMIT)
