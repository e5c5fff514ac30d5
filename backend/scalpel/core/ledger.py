"""
Quota ledger: per-account `files_used` against `file_limit`.

`reserve()` is a single conditional UPDATE (increase only if the result stays
within the limit, or the account is pro), so two workers can never both
spend the last slots. Inside one process reservations for the same account
additionally queue on a per-account lock; different accounts never share a
lock.
"""
import asyncio
import uuid
import weakref
from dataclasses import dataclass
from typing import Callable

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from scalpel.core.errors import AuthRequired, InvalidInput, QuotaExceeded, UpstreamFailure
from scalpel.db import new_session
from scalpel.models.account import Account, Plan

log = structlog.get_logger()


@dataclass(frozen=True)
class Usage:
    plan: str
    file_limit: int
    files_used: int

    @property
    def remaining(self) -> int:
        return max(0, self.file_limit - self.files_used)


class QuotaLedger:

    def __init__(self, sessions: Callable[[], AsyncSession] = new_session):
        self._sessions = sessions
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, account_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    async def reserve(self, account_id: uuid.UUID, count: int) -> Usage:
        """
        Charge `count` files to the account.

        Raises QuotaExceeded (with the exact remaining count) when a free
        account would go over its limit, and UpstreamFailure when the store
        cannot confirm the increment. Usage is never rolled back.
        """
        if count <= 0:
            raise InvalidInput("File count must be positive")

        lock = self._lock_for(account_id)
        async with lock:
            try:
                async with self._sessions() as session:
                    result = await session.execute(
                        update(Account)
                        .where(Account.id == account_id)
                        .where(or_(
                            Account.plan == Plan.PRO.value,
                            Account.files_used + count <= Account.file_limit,
                        ))
                        .values(files_used=Account.files_used + count)
                        .returning(Account.plan, Account.file_limit, Account.files_used)
                        .execution_options(synchronize_session=False)
                    )
                    row = result.one_or_none()
                    if row is None:
                        current = await self._read(session, account_id)
                        await session.rollback()
                    else:
                        await session.commit()
            except SQLAlchemyError as e:
                log.error("quota_reserve_failed", account_id=str(account_id), count=count, error=str(e))
                raise UpstreamFailure("Failed to reserve usage") from e

        if row is None:
            if current is None:
                raise AuthRequired("User not found")
            log.info("quota_exceeded", account_id=str(account_id), count=count, remaining=current.remaining)
            raise QuotaExceeded(current.remaining)

        usage = Usage(plan=row.plan, file_limit=row.file_limit, files_used=row.files_used)
        log.info("quota_reserved", account_id=str(account_id), count=count, files_used=usage.files_used)
        return usage

    async def usage(self, account_id: uuid.UUID) -> Usage:
        try:
            async with self._sessions() as session:
                current = await self._read(session, account_id)
        except SQLAlchemyError as e:
            log.error("quota_read_failed", account_id=str(account_id), error=str(e))
            raise UpstreamFailure() from e
        if current is None:
            raise AuthRequired("User not found")
        return current

    @staticmethod
    async def _read(session: AsyncSession, account_id: uuid.UUID):
        row = (await session.execute(
            select(Account.plan, Account.file_limit, Account.files_used).where(Account.id == account_id)
        )).one_or_none()
        if row is None:
            return None
        return Usage(plan=row.plan, file_limit=row.file_limit, files_used=row.files_used)


ledger = QuotaLedger()


def get_ledger() -> QuotaLedger:
    return ledger
