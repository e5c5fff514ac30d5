from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from scalpel.config import settings
from scalpel.core.csrf import require_csrf
from scalpel.core.errors import AuthRequired
from scalpel.core.security import create_session_token, decode_session_token
from scalpel.db import get_db
from scalpel.models.account import Account


def _token_from(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    scheme, _, credentials = auth.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


async def get_current_account(request: Request, db: AsyncSession = Depends(get_db)) -> Account:
    """Account behind the session token, re-read from the store on every call."""
    token = _token_from(request)
    if not token:
        raise AuthRequired()
    claims = decode_session_token(token)
    if claims is None:
        raise AuthRequired("Invalid or expired token")
    account = await db.get(Account, claims["sub"])
    if account is None:
        raise AuthRequired("User not found")
    return account


def set_session_cookie(response: Response, account: Account) -> None:
    token = create_session_token(account.id, account.email, account.role)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )


async def get_writer_account(request: Request, account: Account = Depends(get_current_account)) -> Account:
    """Same as get_current_account, plus the CSRF check for state-changing calls."""
    await require_csrf(request)
    return account
