"""
Signup, login, token handling and admin role provisioning.
"""
from datetime import timedelta

import pytest

from lucky_triple.core.auth import create_access_token, decode_access_token, hash_password, verify_password
from lucky_triple.core.errors import PermissionDenied, ValidationFailed
from lucky_triple.models import Account, AccountRole, OutboundNotification
from lucky_triple.services.auth_service import AuthService, role_for_email


class TestCredentials:

    def test_password_hash_round_trip(self):
        hashed = hash_password("hunter2")
        assert hashed != "hunter2"
        assert verify_password("hunter2", hashed)
        assert not verify_password("hunter3", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert verify_password("anything", "not-a-hash") is False

    def test_token_claims(self, player):
        claims = decode_access_token(create_access_token(player))

        assert claims["sub"] == player.id
        assert claims["email"] == "player@example.com"
        assert claims["role"] == "player"
        assert claims["is_admin"] is False

    def test_expired_token_rejected(self, player):
        token = create_access_token(player, expires_in=timedelta(seconds=-5))

        with pytest.raises(PermissionDenied):
            decode_access_token(token)


class TestRoleProvisioning:

    def test_exact_match_only(self):
        admins = {"owner@luckytriple.com"}

        assert role_for_email("Owner@LuckyTriple.com", admins) == AccountRole.ADMIN
        assert role_for_email("admin@example.com", admins) == AccountRole.PLAYER
        assert role_for_email("notadmin.owner@luckytriple.com", admins) == AccountRole.PLAYER

    def test_register_assigns_provisioned_role(self, db_session):
        service = AuthService(db_session, admin_emails={"owner@luckytriple.com"})

        admin = service.register("owner@luckytriple.com", "pw123456", "+233245550000")["account"]
        player = service.register("admin@gmail.com", "pw123456", "+233245550001")["account"]

        assert admin.is_admin
        assert not player.is_admin

    def test_provision_admin_promotes_existing(self, db_session, player):
        account = AuthService(db_session).provision_admin("player@example.com", "ignored", "+233")

        assert account.id == player.id
        assert account.role == AccountRole.ADMIN.value


class TestAuthService:

    def test_register(self, db_session):
        result = AuthService(db_session, admin_emails=set()).register(" New@Example.com ", "pw123456", "0245550000")

        account = result["account"]
        assert account.email == "new@example.com"
        assert account.balance == 0
        assert result["token"]

        welcome = db_session.query(OutboundNotification).one()
        assert welcome.purpose == "welcome"
        assert welcome.phone == "0245550000"

    def test_register_validation(self, db_session):
        service = AuthService(db_session, admin_emails=set())

        with pytest.raises(ValidationFailed, match="All fields are required"):
            service.register("a@example.com", "", "0245550000")
        with pytest.raises(ValidationFailed, match="Invalid email address"):
            service.register("not-an-email", "pw", "0245550000")
        with pytest.raises(ValidationFailed, match="Invalid phone number"):
            service.register("a@example.com", "pw", "phone")

    def test_duplicate_email(self, db_session, player):
        with pytest.raises(ValidationFailed, match="Email already exists"):
            AuthService(db_session).register("PLAYER@example.com", "pw123456", "0245550000")

    def test_login_stamps_last_login(self, db_session, player):
        assert player.last_login is None

        result = AuthService(db_session).login("player@example.com", "secret123")

        assert result["account"].last_login is not None

    def test_login_wrong_password(self, db_session, player):
        with pytest.raises(ValidationFailed, match="Invalid credentials"):
            AuthService(db_session).login("player@example.com", "wrong")


class TestAuthEndpoints:

    def test_signup_and_me(self, test_client):
        response = test_client.post(
            "/api/auth/signup",
            json={"email": "fresh@example.com", "password": "pw123456", "phone": "+233245551234"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "password_hash" not in data["user"]

        me = test_client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "fresh@example.com"

    def test_signup_missing_fields(self, test_client):
        response = test_client.post("/api/auth/signup", json={"email": "x@example.com"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "All fields are required"}

    def test_login(self, test_client, player):
        response = test_client.post("/api/auth/login", json={"email": "player@example.com", "password": "secret123"})

        assert response.status_code == 200
        assert response.json()["user"]["id"] == player.id

    def test_login_bad_credentials(self, test_client, player):
        response = test_client.post("/api/auth/login", json={"email": "player@example.com", "password": "nope"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid credentials"

    def test_missing_token(self, test_client):
        response = test_client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Access token required"

    def test_invalid_token(self, test_client):
        response = test_client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid or expired token"

    def test_deleted_account(self, test_client, db_session, player, player_headers):
        db_session.delete(player)
        db_session.commit()

        response = test_client.get("/api/auth/me", headers=player_headers)

        assert response.status_code == 401

    def test_non_admin_blocked_from_admin_routes(self, test_client, player_headers):
        response = test_client.get("/api/admin/users", headers=player_headers)

        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"

    def test_correlation_id_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"


class TestRateLimiting:

    @pytest.fixture
    def enabled_limiter(self, monkeypatch):
        from lucky_triple.core.rate_limit import limiter

        limiter.reset()
        monkeypatch.setattr(limiter, "enabled", True)
        yield limiter
        limiter.reset()

    def test_login_limit_uses_error_envelope(self, test_client, player, enabled_limiter):
        body = {"email": "player@example.com", "password": "nope"}
        for _ in range(10):
            assert test_client.post("/api/auth/login", json=body).status_code == 400

        response = test_client.post("/api/auth/login", json=body)

        assert response.status_code == 429
        data = response.json()
        assert data["success"] is False
        assert data["error"].startswith("Rate limit exceeded")
