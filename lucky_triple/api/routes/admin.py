"""
Admin console routes.

Every endpoint requires an admin token (403 "Admin access required" otherwise).
"""
from typing import AsyncGenerator, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from lucky_triple.core.auth import require_admin
from lucky_triple.core.database import get_db
from lucky_triple.core.errors import LuckyTripleError, ServiceFailure
from lucky_triple.core.logging import get_logger
from lucky_triple.models import Account
from lucky_triple.services.admin_service import AdminService
from lucky_triple.services.payloqa_client import PayloqaClient
from lucky_triple.services.withdrawal_service import WithdrawalService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


async def get_sms_client() -> AsyncGenerator[PayloqaClient, None]:
    """Payloqa client for the lifetime of one request."""
    client = PayloqaClient.from_settings()
    try:
        yield client
    finally:
        await client.close()


# Request models accept snake_case and the camelCase used by the web console
class CreditRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    amount: Optional[float] = None
    reason: Optional[str] = None


class WithdrawalDecision(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: Optional[str] = Field(None, alias="transactionId")
    reason: Optional[str] = None


class PayoutMultipliers(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    one_match: Optional[float] = Field(None, alias="oneMatch")
    two_matches: Optional[float] = Field(None, alias="twoMatches")
    three_matches: Optional[float] = Field(None, alias="threeMatches")


class GameSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    house_fee: Optional[float] = Field(None, alias="houseFee")
    min_bet: Optional[float] = Field(None, alias="minBet")
    max_bet: Optional[float] = Field(None, alias="maxBet")
    payout_multipliers: Optional[PayoutMultipliers] = Field(None, alias="payoutMultipliers")

    def changes(self) -> dict:
        """Flatten to GameSettings column names, dropping fields that were not sent."""
        changes = {
            "house_fee": self.house_fee,
            "min_bet": self.min_bet,
            "max_bet": self.max_bet,
        }
        if self.payout_multipliers is not None:
            changes["one_match_multiplier"] = self.payout_multipliers.one_match
            changes["two_matches_multiplier"] = self.payout_multipliers.two_matches
            changes["three_matches_multiplier"] = self.payout_multipliers.three_matches
        return {key: value for key, value in changes.items() if value is not None}


class SendSmsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_ids: List[str] = Field(default_factory=list, alias="userIds")
    message: Optional[str] = None


class BroadcastRequest(BaseModel):
    message: Optional[str] = None


@router.get("/users")
async def list_users(admin: Account = Depends(require_admin), db: Session = Depends(get_db)):
    players = AdminService(db).list_players()
    return {"success": True, "users": [player.to_public_dict() for player in players]}


@router.post("/credit-user")
async def credit_user(
    payload: CreditRequest,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        new_balance = AdminService(db).credit_account(payload.user_id, payload.amount, admin, payload.reason)
        return {"success": True, "message": "User credited successfully", "new_balance": new_balance}
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Credit user error: {e}", exc_info=True)
        raise ServiceFailure("Failed to credit user")


@router.get("/withdrawals")
async def list_withdrawals(admin: Account = Depends(require_admin), db: Session = Depends(get_db)):
    entries = WithdrawalService(db).all()
    return {"success": True, "withdrawals": [entry.to_dict(include_account=True) for entry in entries]}


@router.post("/approve-withdrawal")
async def approve_withdrawal(
    payload: WithdrawalDecision,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        entry = WithdrawalService(db).approve(payload.transaction_id, admin)
        return {
            "success": True,
            "message": "Withdrawal approved successfully",
            "transaction": entry.to_dict(),
        }
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Approve withdrawal error: {e}", exc_info=True)
        raise ServiceFailure("Failed to approve withdrawal")


@router.post("/reject-withdrawal")
async def reject_withdrawal(
    payload: WithdrawalDecision,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        entry = WithdrawalService(db).reject(payload.transaction_id, admin, payload.reason)
        return {
            "success": True,
            "message": "Withdrawal rejected",
            "transaction": entry.to_dict(),
        }
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Reject withdrawal error: {e}", exc_info=True)
        raise ServiceFailure("Failed to reject withdrawal")


@router.put("/game-settings")
async def update_game_settings(
    payload: GameSettingsUpdate,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Partial update; omitted fields and multipliers keep their current value."""
    try:
        game_settings = AdminService(db).update_game_settings(payload.changes(), admin)
        return {
            "success": True,
            "message": "Game settings updated successfully",
            "settings": game_settings.to_dict(),
        }
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Update settings error: {e}", exc_info=True)
        raise ServiceFailure("Failed to update settings")


@router.post("/send-sms")
async def send_sms(
    payload: SendSmsRequest,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    client: PayloqaClient = Depends(get_sms_client),
):
    try:
        result = await AdminService(db).send_sms(payload.user_ids, payload.message, admin, client)
        return {"success": True, "message": "SMS sent", "result": result}
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Send SMS error: {e}", exc_info=True)
        raise ServiceFailure("Failed to send SMS")


@router.post("/send-sms-all")
async def send_sms_all(
    payload: BroadcastRequest,
    admin: Account = Depends(require_admin),
    db: Session = Depends(get_db),
    client: PayloqaClient = Depends(get_sms_client),
):
    try:
        result = await AdminService(db).send_sms_all(payload.message, admin, client)
        return {"success": True, "message": "SMS sent to all users", "result": result}
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Broadcast SMS error: {e}", exc_info=True)
        raise ServiceFailure("Failed to send SMS")


@router.get("/sms-logs")
async def sms_logs(admin: Account = Depends(require_admin), db: Session = Depends(get_db)):
    logs = AdminService(db).recent_sms_logs()
    return {"success": True, "logs": [log.to_dict() for log in logs]}


@router.get("/stats")
async def stats(admin: Account = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return {"success": True, "stats": AdminService(db).stats()}
    except Exception as e:
        logger.error(f"Stats error: {e}", exc_info=True)
        raise ServiceFailure("Failed to fetch stats")
