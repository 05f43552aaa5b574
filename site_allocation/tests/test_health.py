from fastapi.testclient import TestClient

from site_allocation.main import app

client = TestClient(app)


def test_read_main():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_health():
    response = client.get("/metrics/health")
    assert response.status_code == 200
    assert response.json()["metrics_system"] == "operational"
