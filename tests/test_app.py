from .helpers import API


class TestServiceRoutes:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "ok"
        assert "X-Process-Time" in response.headers

    def test_info_lists_resource_groups(self, client):
        endpoints = client.get(f"{API}/info").json()["endpoints"]
        assert endpoints["appointments"] == f"{API}/appointments"
        assert endpoints["openapi"] == f"{API}/openapi.json"


class TestErrorBodies:

    def test_unknown_route(self, client):
        response = client.get(f"{API}/nowhere")
        assert response.status_code == 404
        assert response.json() == {
            "error": "NotFound",
            "message": "Not Found",
            "path": f"{API}/nowhere"
        }

    def test_missing_token(self, client):
        response = client.get(f"{API}/patients/profile")
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthenticated"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_validation_error_is_invalid_argument(self, client):
        response = client.post(f"{API}/auth/login", json={"email": "not-an-email"})
        assert response.status_code == 400

        data = response.json()
        assert data["error"] == "InvalidArgument"
        assert "password" in data["message"]
