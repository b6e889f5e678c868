"""
Health endpoints and the error envelope.
"""
from fastapi.testclient import TestClient


class TestHealthEndpoints:

    def test_health_endpoint(self, test_client: TestClient):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_api_health_reports_outbox_depth(self, test_client: TestClient, db_session):
        from lucky_triple.services.notification_service import NotificationQueue

        NotificationQueue(db_session).enqueue("+233245550000", "Queued", "welcome")
        db_session.commit()

        response = test_client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["components"]["database"]["status"] == "connected"
        assert data["components"]["outbox"]["pending"] == 1
        assert data["components"]["scheduler"]["status"] == "stopped"


class TestErrorEnvelope:

    def test_unknown_route(self, test_client: TestClient):
        response = test_client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_body_validation_error(self, test_client: TestClient, player_headers):
        response = test_client.post(
            "/api/game/play",
            json={"bet_amount": "ten", "guesses": [1, 2, 3]},
            headers=player_headers,
        )

        assert response.status_code == 400
        assert response.json()["success"] is False
