"""Register / login / logout."""
import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scalpel.api.deps import clear_session_cookie, set_session_cookie
from scalpel.config import settings
from scalpel.core.csrf import set_csrf_cookie
from scalpel.core.errors import AuthRequired, Conflict
from scalpel.core.ratelimit import limit_auth
from scalpel.core.security import hash_password, verify_password
from scalpel.db import get_db
from scalpel.models.account import Account, Plan
from scalpel.schemas.account import AuthResponse, Credentials, RegisterRequest, UserSummary

router = APIRouter()
log = structlog.get_logger()


def _start_session(request: Request, response: Response, account: Account) -> AuthResponse:
    set_session_cookie(response, account)
    set_csrf_cookie(response, request.cookies.get(settings.CSRF_COOKIE_NAME))
    return AuthResponse(user=UserSummary.model_validate(account))


@router.post("/register", response_model=AuthResponse, dependencies=[Depends(limit_auth)])
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    existing = await db.scalar(select(Account.id).where(Account.email == body.email))
    if existing is not None:
        raise Conflict("User exists")

    account = Account(
        email=body.email,
        password_hash=hash_password(body.password),
        role="user",
        plan=Plan.FREE.value,
        file_limit=settings.DEFAULT_FREE_LIMIT,
        files_used=0,
    )
    db.add(account)
    try:
        await db.flush()
    except IntegrityError as e:
        raise Conflict("User exists") from e

    log.info("account_registered", account_id=str(account.id))
    return _start_session(request, response, account)


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(limit_auth)])
async def login(
    body: Credentials,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    account = await db.scalar(select(Account).where(Account.email == body.email))
    if account is None or not verify_password(body.password, account.password_hash):
        log.info("login_failed")
        raise AuthRequired("Invalid credentials")

    log.info("login_ok", account_id=str(account.id))
    return _start_session(request, response, account)


@router.post("/logout")
async def logout(response: Response):
    clear_session_cookie(response)
    return {"ok": True}
