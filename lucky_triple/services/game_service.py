"""
Wager settlement for the three-digit guessing game.

A play draws three independent digits 0-9 and counts position-wise matches
against the player's guesses. The payout is ``bet * multiplier[matches]``
(zero matches pays nothing) and the profit ``payout - bet`` is applied to the
balance.

The balance write, wager record, bet/win ledger entries and the win SMS are
committed together. The balance is written with a compare-and-swap so a
concurrent play or withdrawal on the same account cannot be lost.
"""
import math
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from lucky_triple.core import metrics
from lucky_triple.core.errors import BalanceConflict, InsufficientBalance, ValidationFailed
from lucky_triple.core.logging import get_logger
from lucky_triple.models import Account, GameSettings, LedgerKind, LedgerStatus, Wager
from lucky_triple.repositories import (
    AccountRepository,
    GameSettingsRepository,
    LedgerRepository,
    WagerRepository,
)
from lucky_triple.services.notification_service import NotificationPurpose, NotificationQueue, money

logger = get_logger(__name__)

DIGITS_PER_DRAW = 3
WIN_NOTIFICATION_MIN_MATCHES = 2

_system_random = random.SystemRandom()


def draw_winning_numbers(rng: Optional[random.Random] = None) -> List[int]:
    """Three independent uniform digits 0-9."""
    rng = rng or _system_random
    return [rng.randint(0, 9) for _ in range(DIGITS_PER_DRAW)]


def count_matches(guesses: Sequence[int], drawn: Sequence[int]) -> int:
    """Positions where guess == drawn digit; [1,2,3] vs [3,2,1] is one match, not three."""
    return sum(1 for guess, digit in zip(guesses, drawn) if int(guess) == digit)


@dataclass
class Settlement:
    bet: float
    matches: int
    multiplier: float
    payout: float
    profit: float


def settle(bet: float, matches: int, game_settings: GameSettings) -> Settlement:
    multiplier = game_settings.multiplier_for(matches)
    payout = round(bet * multiplier, 2)
    return Settlement(
        bet=bet,
        matches=matches,
        multiplier=multiplier,
        payout=payout,
        profit=round(payout - bet, 2),
    )


def validate_guesses(guesses: Sequence) -> List[int]:
    if guesses is None or len(guesses) != DIGITS_PER_DRAW:
        raise ValidationFailed("Invalid game parameters")
    parsed = []
    for guess in guesses:
        try:
            digit = int(guess)
        except (TypeError, ValueError):
            raise ValidationFailed("Invalid game parameters")
        fractional = digit != guess and str(guess).strip() != str(digit)
        if fractional or digit < 0 or digit > 9:
            raise ValidationFailed("Guesses must be single digits 0-9")
        parsed.append(digit)
    return parsed


class GameService:
    """Plays and lists wagers for one account at a time."""

    def __init__(self, db: Session, rng: Optional[random.Random] = None):
        self.db = db
        self.rng = rng
        self.accounts = AccountRepository(db)
        self.ledger = LedgerRepository(db)
        self.wagers = WagerRepository(db)
        self.settings_repo = GameSettingsRepository(db)
        self.notifications = NotificationQueue(db)

    def current_settings(self) -> GameSettings:
        settings_row = self.settings_repo.load()
        self.db.commit()
        return settings_row

    def play(self, account: Account, bet: float, guesses: Sequence) -> Dict:
        """
        Settle one wager.

        Raises:
            ValidationFailed: bad guesses or bet outside [min_bet, max_bet] after rounding to cents
            InsufficientBalance: bet exceeds the current balance
            BalanceConflict: balance changed concurrently; nothing was written
        """
        if bet is None or not math.isfinite(bet):
            raise ValidationFailed("Invalid game parameters")
        bet = round(bet, 2)
        if bet <= 0:
            raise ValidationFailed("Invalid game parameters")
        digits = validate_guesses(guesses)

        game_settings = self.settings_repo.load()
        if bet < game_settings.min_bet or bet > game_settings.max_bet:
            raise ValidationFailed(
                f"Bet must be between {money(game_settings.min_bet)} and {money(game_settings.max_bet)}"
            )

        balance_before = account.balance
        if balance_before < bet:
            raise InsufficientBalance()

        winning_numbers = draw_winning_numbers(self.rng)
        matches = count_matches(digits, winning_numbers)
        outcome = settle(bet, matches, game_settings)
        balance_after = round(balance_before + outcome.profit, 2)

        if not self.accounts.compare_and_set_balance(account, balance_before, balance_after):
            self.db.rollback()
            metrics.balance_conflicts_total.labels(operation="wager").inc()
            raise BalanceConflict()

        now = datetime.utcnow()
        self.wagers.create(
            account_id=account.id,
            bet_amount=bet,
            guesses=digits,
            winning_numbers=winning_numbers,
            matches=matches,
            payout=outcome.payout,
            profit=outcome.profit,
            balance_before=balance_before,
            balance_after=balance_after,
        )
        self.ledger.create(
            account_id=account.id,
            kind=LedgerKind.BET.value,
            amount=bet,
            status=LedgerStatus.COMPLETED.value,
            processed_at=now,
        )
        if outcome.payout > 0:
            self.ledger.create(
                account_id=account.id,
                kind=LedgerKind.WIN.value,
                amount=outcome.payout,
                status=LedgerStatus.COMPLETED.value,
                processed_at=now,
            )
        if matches >= WIN_NOTIFICATION_MIN_MATCHES:
            self.notifications.enqueue(
                account.phone,
                f"Congratulations! You won {money(outcome.payout)} with {matches} matches! "
                f"Your new balance is {money(balance_after)}.",
                NotificationPurpose.WIN,
                account.id,
            )
        self.db.commit()

        metrics.wagers_total.labels(matches=str(matches)).inc()
        metrics.wager_stake_total.inc(bet)
        if outcome.payout > 0:
            metrics.wager_payout_total.inc(outcome.payout)
        logger.info(
            f"Wager settled: bet={bet} matches={matches} profit={outcome.profit}",
            extra={"winning_numbers": winning_numbers},
        )

        return {
            "winning_numbers": winning_numbers,
            "matches": matches,
            "payout": outcome.payout,
            "profit": outcome.profit,
            "new_balance": balance_after,
            "message": "You won!" if matches > 0 else "Better luck next time!",
        }

    def history(self, account: Account) -> List[Wager]:
        return self.wagers.recent_for_account(account.id)
