"""Promo redemption (server-side validation only)."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from scalpel.api.deps import get_writer_account
from scalpel.core.errors import InvalidInput, PromoRejected
from scalpel.core.plans import PlanGate, get_plan_gate
from scalpel.core.ratelimit import client_ip, promo_limiter
from scalpel.models.account import Account
from scalpel.schemas.account import PromoRequest, PromoResponse

router = APIRouter()

GENERIC_FAILURE = "Invalid code or already used"


@router.post("/redeem-promo", response_model=PromoResponse)
async def redeem_promo(
    body: PromoRequest,
    request: Request,
    account: Account = Depends(get_writer_account),
    gate: PlanGate = Depends(get_plan_gate),
):
    await promo_limiter.check(f"ip:{client_ip(request)}")
    await promo_limiter.check(f"account:{account.id}")

    try:
        upgraded = await gate.redeem(account.id, body.value)
    except (InvalidInput, PromoRejected):
        return JSONResponse(status_code=400, content={"success": False, "message": GENERIC_FAILURE})

    message = "Promo applied" if upgraded else "Pro plan already active"
    return PromoResponse(success=True, message=message)
