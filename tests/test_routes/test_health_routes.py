# tests/test_routes/test_health_routes.py


def test_health_check(test_client):
    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_database_health(test_client):
    response = test_client.get("/health/db")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "connected"}
