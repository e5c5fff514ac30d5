"""
Error taxonomy. Every error knows its HTTP status and a short machine code;
`extra()` adds structured detail to the JSON body.
"""
from typing import Any, Optional

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class ScalpelError(Exception):
    status_code = 500
    code = "server_error"
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> dict[str, Any]:
        return {}


class AuthRequired(ScalpelError):
    status_code = 401
    code = "auth_required"
    default_message = "Authentication required"


class Forbidden(ScalpelError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class InvalidInput(ScalpelError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid input"


class Conflict(ScalpelError):
    status_code = 409
    code = "conflict"
    default_message = "Already exists"


class QuotaExceeded(ScalpelError):
    status_code = 403
    code = "quota_exceeded"

    def __init__(self, remaining: int):
        self.remaining = max(0, remaining)
        if self.remaining == 0:
            message = "Free limit reached"
        else:
            message = f"Only {self.remaining} files remaining in free plan"
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        return {"remaining": self.remaining}


class UnsupportedType(ScalpelError):
    status_code = 400
    code = "unsupported_type"

    def __init__(self, filename: str, detected: Optional[str] = None):
        self.filename = filename
        self.detected = detected
        super().__init__(f"Unsupported file type: {filename}")

    def extra(self) -> dict[str, Any]:
        return {"filename": self.filename}


class PayloadTooLarge(ScalpelError):
    status_code = 413
    code = "payload_too_large"
    default_message = "Upload too large"

    def __init__(self, message: Optional[str] = None, filename: Optional[str] = None):
        self.filename = filename
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        return {"filename": self.filename} if self.filename else {}


class PromoRejected(ScalpelError):
    status_code = 400
    code = "promo_rejected"
    default_message = "Invalid code or already used"


class InvalidSignature(ScalpelError):
    status_code = 400
    code = "invalid_signature"
    default_message = "Invalid signature"


class RateLimited(ScalpelError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests, slow down."

    def __init__(self, message: Optional[str] = None, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__(message)


class UpstreamFailure(ScalpelError):
    code = "upstream_failure"
    default_message = "Server error"


class ProcessingTimeout(ScalpelError):
    code = "processing_timeout"
    default_message = "Processing failed"


class ServerMisconfigured(ScalpelError):
    code = "server_misconfigured"
    default_message = "Server misconfigured"


async def scalpel_error_handler(request: Request, exc: ScalpelError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        log.info("request_rejected", path=request.url.path, code=exc.code, status=exc.status_code)
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": exc.message, "code": exc.code, **exc.extra()},
        headers=headers,
    )
