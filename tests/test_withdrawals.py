"""
Withdrawal state machine: request, approve (with balance re-check), reject.
"""
import pytest
from sqlalchemy import update

from lucky_triple.core.errors import AlreadyProcessed, InsufficientBalance, NotFound, ValidationFailed
from lucky_triple.models import LedgerEntry, OutboundNotification
from lucky_triple.services.withdrawal_service import WithdrawalService


class TestWithdrawalService:

    def test_request_creates_pending_entry(self, db_session, player, admin):
        entry = WithdrawalService(db_session).request(player, 20)

        assert entry.status == "pending"
        assert entry.kind == "withdrawal"
        assert entry.amount == 20
        assert entry.reference.startswith("WTH_")
        assert entry.reference.endswith(f"_{player.id}")

        # Funds are not held while pending
        db_session.refresh(player)
        assert player.balance == 50

        purposes = sorted(n.purpose for n in db_session.query(OutboundNotification).all())
        assert purposes == ["withdrawal_admin_alert", "withdrawal_requested"]

    def test_request_validation(self, db_session, player):
        service = WithdrawalService(db_session)

        with pytest.raises(ValidationFailed):
            service.request(player, 0)
        with pytest.raises(InsufficientBalance):
            service.request(player, 50.01)

    def test_approve_debits_balance(self, db_session, player, admin):
        service = WithdrawalService(db_session)
        entry = service.request(player, 20)

        approved = service.approve(entry.id, admin)

        assert approved.status == "approved"
        assert approved.processed_by == admin.id
        assert approved.processed_at is not None
        db_session.refresh(player)
        assert player.balance == 30

    def test_approve_rechecks_balance(self, db_session, player, admin):
        service = WithdrawalService(db_session)
        first = service.request(player, 40)
        second = service.request(player, 40)

        service.approve(first.id, admin)

        with pytest.raises(InsufficientBalance, match="User has insufficient balance"):
            service.approve(second.id, admin)

        db_session.refresh(player)
        assert player.balance == 10
        assert db_session.get(LedgerEntry, second.id).status == "pending"

    def test_terminal_states(self, db_session, player, admin):
        service = WithdrawalService(db_session)
        entry = service.request(player, 10)
        service.reject(entry.id, admin)

        with pytest.raises(AlreadyProcessed):
            service.approve(entry.id, admin)
        with pytest.raises(AlreadyProcessed):
            service.reject(entry.id, admin)

        db_session.refresh(player)
        assert player.balance == 50

    def test_reject_reason(self, db_session, player, admin):
        service = WithdrawalService(db_session)

        with_reason = service.reject(service.request(player, 5).id, admin, "KYC incomplete")
        default = service.reject(service.request(player, 5).id, admin)

        assert with_reason.reference == "KYC incomplete"
        assert default.reference == "Rejected by admin"

        rejected_sms = [
            n.message for n in db_session.query(OutboundNotification).all()
            if n.purpose == "withdrawal_rejected"
        ]
        assert any("Reason: KYC incomplete" in message for message in rejected_sms)

    def test_unknown_transaction(self, db_session, admin):
        with pytest.raises(NotFound):
            WithdrawalService(db_session).approve("missing", admin)

    def test_rounding_to_zero_is_rejected(self, db_session, player):
        with pytest.raises(ValidationFailed, match="Invalid amount"):
            WithdrawalService(db_session).request(player, 0.004)

        assert db_session.query(LedgerEntry).count() == 0


class TestConcurrentDecisions:
    """The service read the entry as pending, then another decision reached the row first."""

    @staticmethod
    def decided_elsewhere(db_session, entry, status):
        assert entry.status == "pending"
        db_session.execute(
            update(LedgerEntry)
            .where(LedgerEntry.id == entry.id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        # The loaded instance still says pending
        assert entry.status == "pending"

    def test_approve_after_concurrent_reject(self, db_session, player, admin):
        service = WithdrawalService(db_session)
        entry = service.request(player, 20)
        self.decided_elsewhere(db_session, entry, "rejected")

        with pytest.raises(AlreadyProcessed):
            service.approve(entry.id, admin)

        db_session.refresh(entry)
        db_session.refresh(player)
        assert entry.processed_by is None
        assert player.balance == 50
        purposes = [n.purpose for n in db_session.query(OutboundNotification).all()]
        assert "withdrawal_approved" not in purposes

    def test_reject_after_concurrent_approve(self, db_session, player, admin):
        service = WithdrawalService(db_session)
        entry = service.request(player, 20)
        self.decided_elsewhere(db_session, entry, "approved")

        with pytest.raises(AlreadyProcessed):
            service.reject(entry.id, admin, "too late")

        db_session.refresh(entry)
        assert entry.processed_by is None
        assert entry.reference.startswith("WTH_")
        purposes = [n.purpose for n in db_session.query(OutboundNotification).all()]
        assert "withdrawal_rejected" not in purposes


class TestWithdrawalEndpoints:

    def test_request_and_list(self, test_client, player_headers):
        response = test_client.post("/api/withdrawals/request", json={"amount": 15}, headers=player_headers)

        assert response.status_code == 200
        assert response.json()["transaction"]["status"] == "pending"

        listing = test_client.get("/api/withdrawals/my-withdrawals", headers=player_headers)
        withdrawals = listing.json()["withdrawals"]
        assert len(withdrawals) == 1
        assert withdrawals[0]["amount"] == 15

    def test_request_more_than_balance(self, test_client, player_headers):
        response = test_client.post("/api/withdrawals/request", json={"amount": 500}, headers=player_headers)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Insufficient balance"}

    def test_admin_approve_flow(self, test_client, player_headers, admin_headers):
        created = test_client.post("/api/withdrawals/request", json={"amount": 15}, headers=player_headers)
        transaction_id = created.json()["transaction"]["id"]

        listing = test_client.get("/api/admin/withdrawals", headers=admin_headers)
        assert listing.json()["withdrawals"][0]["account"]["email"] == "player@example.com"

        approved = test_client.post(
            "/api/admin/approve-withdrawal",
            json={"transactionId": transaction_id},
            headers=admin_headers,
        )
        assert approved.status_code == 200
        assert approved.json()["transaction"]["status"] == "approved"

        again = test_client.post(
            "/api/admin/approve-withdrawal",
            json={"transaction_id": transaction_id},
            headers=admin_headers,
        )
        assert again.status_code == 400
        assert again.json()["error"] == "Transaction already processed"

        me = test_client.get("/api/auth/me", headers=player_headers)
        assert me.json()["user"]["balance"] == 35

    def test_admin_reject(self, test_client, player_headers, admin_headers):
        created = test_client.post("/api/withdrawals/request", json={"amount": 15}, headers=player_headers)

        rejected = test_client.post(
            "/api/admin/reject-withdrawal",
            json={"transactionId": created.json()["transaction"]["id"], "reason": "Duplicate"},
            headers=admin_headers,
        )

        assert rejected.status_code == 200
        assert rejected.json()["transaction"]["reference"] == "Duplicate"
