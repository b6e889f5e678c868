"""
Game routes: play a wager, list history, read the payout settings.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from lucky_triple.core.auth import get_current_account
from lucky_triple.core.database import get_db
from lucky_triple.core.errors import LuckyTripleError, ServiceFailure
from lucky_triple.core.logging import get_logger
from lucky_triple.core.rate_limit import GAME_LIMIT, limiter
from lucky_triple.models import Account
from lucky_triple.services.game_service import GameService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/game", tags=["game"])


class PlayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bet_amount: Optional[float] = Field(None, validation_alias=AliasChoices("bet", "betAmount", "bet_amount"))
    guesses: Optional[List[int]] = None


@router.post("/play")
@limiter.limit(GAME_LIMIT)
async def play(
    request: Request,
    payload: PlayRequest,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    """Settle one wager against a fresh draw of three digits."""
    try:
        result = GameService(db).play(account, payload.bet_amount, payload.guesses)
        return {"success": True, **result}
    except LuckyTripleError:
        raise
    except Exception as e:
        logger.error(f"Game error: {e}", exc_info=True)
        raise ServiceFailure("Game error occurred")


@router.get("/history")
async def history(
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    wagers = GameService(db).history(account)
    return {"success": True, "history": [wager.to_dict() for wager in wagers]}


@router.get("/settings")
async def game_settings(db: Session = Depends(get_db)):
    return {"success": True, "settings": GameService(db).current_settings().to_dict()}
