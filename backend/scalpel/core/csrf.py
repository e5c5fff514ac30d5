"""
Double-submit CSRF: a readable `XSRF-TOKEN` cookie, set on safe requests,
must be echoed in the `X-CSRF-Token` (or `X-XSRF-TOKEN`) header of
state-changing calls.
"""
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from scalpel.config import settings
from scalpel.core.errors import Forbidden
from scalpel.core.security import new_csrf_token, tokens_match

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")
CSRF_HEADERS = ("X-CSRF-Token", "X-XSRF-TOKEN")


def set_csrf_cookie(response: Response, token: Optional[str] = None) -> str:
    token = token or new_csrf_token()
    response.set_cookie(
        settings.CSRF_COOKIE_NAME,
        token,
        max_age=24 * 60 * 60,
        httponly=False,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
    )
    return token


class CSRFCookieMiddleware(BaseHTTPMiddleware):
    """Issues the CSRF cookie on safe requests that do not carry one yet."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.method in SAFE_METHODS and not request.cookies.get(settings.CSRF_COOKIE_NAME):
            set_csrf_cookie(response)
        return response


async def require_csrf(request: Request) -> None:
    header = next((request.headers[h] for h in CSRF_HEADERS if h in request.headers), None)
    cookie = request.cookies.get(settings.CSRF_COOKIE_NAME)
    if not tokens_match(header, cookie):
        raise Forbidden("Invalid CSRF token")
