"""Tests for the health endpoint."""


class TestHealth:
    def test_health(self, client):
        """Health answers without authentication."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert "timestamp" in data
