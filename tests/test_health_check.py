class TestHealthCheck:
    def test_health_check_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert "services" in data

    def test_health_check_reports_database_status(self, client):
        data = client.get("/health").json()
        assert data["services"]["database"]["status"] == "up"
        assert "response_time_ms" in data["services"]["database"]

    def test_health_check_reports_cache_status(self, client):
        data = client.get("/health").json()
        assert data["services"]["cache"]["status"] == "up"

    def test_cache_failure_reports_unhealthy(self, client, monkeypatch):
        from modules.core import views

        def broken():
            raise ConnectionError("redis down")

        monkeypatch.setattr(views, "_check_cache", broken)
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["services"]["cache"] == {"status": "down"}
