"""
Wager settlement tests: match counting, payout arithmetic, bet validation
and the play/history endpoints.
"""
import random

import pytest

from lucky_triple.core.errors import BalanceConflict, InsufficientBalance, ValidationFailed
from lucky_triple.models import LedgerEntry, OutboundNotification, Wager
from lucky_triple.repositories import GameSettingsRepository
from lucky_triple.services import game_service
from lucky_triple.services.game_service import (
    GameService,
    count_matches,
    draw_winning_numbers,
    settle,
    validate_guesses,
)


@pytest.fixture
def fixed_draw(monkeypatch):
    """Force the next draws to the given digits."""
    def _fix(digits):
        monkeypatch.setattr(game_service, "draw_winning_numbers", lambda rng=None: list(digits))
    return _fix


# =============================================================================
# PURE HELPERS
# =============================================================================

class TestMatchCounting:

    def test_matches_are_positional(self):
        assert count_matches([1, 2, 3], [3, 2, 1]) == 1

    def test_two_matches(self):
        assert count_matches([4, 4, 4], [4, 4, 9]) == 2

    def test_no_and_all_matches(self):
        assert count_matches([0, 0, 0], [1, 2, 3]) == 0
        assert count_matches([7, 0, 7], [7, 0, 7]) == 3

    def test_draw_produces_three_digits(self):
        rng = random.Random(42)
        for _ in range(100):
            digits = draw_winning_numbers(rng)
            assert len(digits) == 3
            assert all(0 <= d <= 9 for d in digits)


class TestSettlement:

    @pytest.fixture
    def game_settings(self, db_session):
        return GameSettingsRepository(db_session).load()

    def test_default_multipliers(self, game_settings):
        assert settle(10, 0, game_settings).payout == 0
        assert settle(10, 1, game_settings).payout == 20
        assert settle(10, 2, game_settings).payout == 100
        assert settle(10, 3, game_settings).payout == 1000

    def test_profit_is_payout_minus_bet(self, game_settings):
        assert settle(10, 0, game_settings).profit == -10
        assert settle(10, 2, game_settings).profit == 90
        assert settle(2.5, 1, game_settings).profit == 2.5

    def test_validate_guesses(self):
        assert validate_guesses([1, 2, 3]) == [1, 2, 3]
        assert validate_guesses(["4", "5", "6"]) == [4, 5, 6]

        with pytest.raises(ValidationFailed):
            validate_guesses([1, 2])
        with pytest.raises(ValidationFailed):
            validate_guesses([1, 2, 10])
        with pytest.raises(ValidationFailed):
            validate_guesses([1, -1, 2])
        with pytest.raises(ValidationFailed):
            validate_guesses([1, 2, 3.5])
        with pytest.raises(ValidationFailed):
            validate_guesses(None)


# =============================================================================
# SERVICE
# =============================================================================

class TestGameService:

    def test_two_match_example(self, db_session, player, fixed_draw):
        fixed_draw([4, 4, 9])

        result = GameService(db_session).play(player, 10, [4, 4, 4])

        assert result["winning_numbers"] == [4, 4, 9]
        assert result["matches"] == 2
        assert result["payout"] == 100
        assert result["profit"] == 90
        assert result["new_balance"] == 140
        assert result["message"] == "You won!"

        db_session.refresh(player)
        assert player.balance == 140

    def test_loss_records_bet_only(self, db_session, player, fixed_draw):
        fixed_draw([9, 9, 9])

        result = GameService(db_session).play(player, 10, [1, 2, 3])

        assert result["matches"] == 0
        assert result["new_balance"] == 40
        assert result["message"] == "Better luck next time!"

        kinds = sorted(e.kind for e in db_session.query(LedgerEntry).all())
        assert kinds == ["bet"]
        assert db_session.query(OutboundNotification).count() == 0

    def test_win_writes_wager_ledger_and_sms(self, db_session, player, fixed_draw):
        fixed_draw([4, 4, 9])

        GameService(db_session).play(player, 10, [4, 4, 4])

        wager = db_session.query(Wager).one()
        assert wager.balance_before == 50
        assert wager.balance_after == 140
        assert wager.guesses == [4, 4, 4]

        entries = {e.kind: e for e in db_session.query(LedgerEntry).all()}
        assert entries["bet"].amount == 10
        assert entries["win"].amount == 100
        assert all(e.status == "completed" for e in entries.values())

        sms = db_session.query(OutboundNotification).one()
        assert sms.purpose == "win"
        assert sms.phone == player.phone
        assert "GHS 100.00" in sms.message

    def test_one_match_pays_without_sms(self, db_session, player, fixed_draw):
        fixed_draw([1, 0, 0])

        result = GameService(db_session).play(player, 10, [1, 2, 3])

        assert result["matches"] == 1
        assert result["new_balance"] == 60
        assert db_session.query(OutboundNotification).count() == 0

    def test_bet_bounds(self, db_session, player):
        service = GameService(db_session)

        with pytest.raises(ValidationFailed) as exc:
            service.play(player, 0.5, [1, 2, 3])
        assert exc.value.message == "Bet must be between GHS 1.00 and GHS 1000.00"

        with pytest.raises(ValidationFailed):
            service.play(player, 1000.01, [1, 2, 3])

        with pytest.raises(ValidationFailed):
            service.play(player, -5, [1, 2, 3])

    def test_bet_rounded_to_cents_before_settlement(self, db_session, player, fixed_draw):
        fixed_draw([9, 9, 9])

        result = GameService(db_session).play(player, 2.499, [1, 2, 3])

        assert result["profit"] == -2.5
        assert result["new_balance"] == 47.5
        assert db_session.query(Wager).one().bet_amount == 2.5
        assert db_session.query(LedgerEntry).one().amount == 2.5

    def test_bet_rounding_to_zero_is_rejected(self, db_session, player):
        with pytest.raises(ValidationFailed, match="Invalid game parameters"):
            GameService(db_session).play(player, 0.004, [1, 2, 3])

        assert db_session.query(Wager).count() == 0

    def test_insufficient_balance(self, db_session, player):
        with pytest.raises(InsufficientBalance):
            GameService(db_session).play(player, 60, [1, 2, 3])

        db_session.refresh(player)
        assert player.balance == 50
        assert db_session.query(Wager).count() == 0

    def test_concurrent_balance_change_is_rejected(self, db_session, player, fixed_draw, monkeypatch):
        fixed_draw([4, 4, 9])
        service = GameService(db_session)
        monkeypatch.setattr(service.accounts, "compare_and_set_balance", lambda *args: False)

        with pytest.raises(BalanceConflict):
            service.play(player, 10, [4, 4, 4])

        assert db_session.query(Wager).count() == 0
        assert db_session.query(LedgerEntry).count() == 0

    def test_stale_expected_balance_does_not_write(self, db_session, player):
        from lucky_triple.repositories import AccountRepository

        repo = AccountRepository(db_session)
        assert repo.compare_and_set_balance(player, expected=49.0, new_balance=0.0) is False
        assert repo.compare_and_set_balance(player, expected=50.0, new_balance=75.0) is True
        db_session.commit()

        db_session.refresh(player)
        assert player.balance == 75.0


# =============================================================================
# ENDPOINTS
# =============================================================================

class TestGameEndpoints:

    def test_play(self, test_client, player_headers, fixed_draw):
        fixed_draw([4, 4, 9])

        response = test_client.post(
            "/api/game/play",
            json={"betAmount": 10, "guesses": [4, 4, 4]},
            headers=player_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["matches"] == 2
        assert data["new_balance"] == 140

    def test_play_accepts_bet_field(self, test_client, db_session, player, player_headers, fixed_draw):
        fixed_draw([9, 9, 9])

        response = test_client.post(
            "/api/game/play",
            json={"bet": 10, "guesses": [1, 2, 3]},
            headers=player_headers,
        )

        assert response.status_code == 200
        assert response.json()["new_balance"] == 40
        assert db_session.query(Wager).one().bet_amount == 10

    def test_play_requires_token(self, test_client):
        response = test_client.post("/api/game/play", json={"bet_amount": 10, "guesses": [1, 2, 3]})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Access token required"}

    def test_play_rejects_bad_guesses(self, test_client, player_headers):
        response = test_client.post(
            "/api/game/play",
            json={"bet_amount": 10, "guesses": [1, 2]},
            headers=player_headers,
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_play_insufficient_balance(self, test_client, player_headers):
        response = test_client.post(
            "/api/game/play",
            json={"bet_amount": 500, "guesses": [1, 2, 3]},
            headers=player_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Insufficient balance"

    def test_history(self, test_client, player_headers, fixed_draw):
        fixed_draw([0, 0, 0])
        for _ in range(3):
            test_client.post("/api/game/play", json={"bet_amount": 1, "guesses": [1, 1, 1]}, headers=player_headers)

        response = test_client.get("/api/game/history", headers=player_headers)

        assert response.status_code == 200
        history = response.json()["history"]
        assert len(history) == 3
        assert all(game["matches"] == 0 for game in history)

    def test_settings_are_public(self, test_client):
        response = test_client.get("/api/game/settings")

        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["min_bet"] == 1
        assert settings["max_bet"] == 1000
        assert settings["payout_multipliers"] == {"one_match": 2, "two_matches": 10, "three_matches": 100}
