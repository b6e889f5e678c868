"""
Player withdrawal routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from lucky_triple.core.auth import get_current_account
from lucky_triple.core.database import get_db
from lucky_triple.core.errors import LuckyTripleError, ServiceFailure
from lucky_triple.core.logging import get_logger
from lucky_triple.models import Account
from lucky_triple.services.withdrawal_service import WithdrawalService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/withdrawals", tags=["withdrawals"])


class WithdrawalRequest(BaseModel):
    amount: Optional[float] = None


@router.post("/request")
async def request_withdrawal(
    payload: WithdrawalRequest,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    """Submit a withdrawal for admin approval. Funds are not held."""
    try:
        entry = WithdrawalService(db).request(account, payload.amount)
        return {
            "success": True,
            "message": "Withdrawal request submitted successfully",
            "transaction": entry.to_dict(),
        }
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Withdrawal request error: {e}", exc_info=True)
        raise ServiceFailure("Server error")


@router.get("/my-withdrawals")
async def my_withdrawals(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    entries = WithdrawalService(db).for_account(account)
    return {"success": True, "withdrawals": [entry.to_dict() for entry in entries]}
