from fastapi import APIRouter, Depends

from scalpel.api.deps import get_current_account
from scalpel.core.ledger import QuotaLedger, get_ledger
from scalpel.models.account import Account
from scalpel.schemas.account import AccountResponse, PlanResponse

router = APIRouter()


@router.get("/account", response_model=AccountResponse)
async def get_account(account: Account = Depends(get_current_account)):
    return AccountResponse(id=account.id, email=account.email, role=account.role, pro=account.is_pro)


@router.post("/check-plan", response_model=PlanResponse)
async def check_plan(
    account: Account = Depends(get_current_account),
    ledger: QuotaLedger = Depends(get_ledger),
):
    usage = await ledger.usage(account.id)
    return PlanResponse(plan=usage.plan, fileLimit=usage.file_limit, filesUsed=usage.files_used)
