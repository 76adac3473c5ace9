# tests/test_health.py
from http import HTTPStatus


async def test_health_endpoint_ok(client):
    """
    /health responds with 200 OK and the expected JSON shape.
    """
    response = await client.get("/health")

    assert response.status_code == HTTPStatus.OK
    data = response.json()

    assert data["status"] == "ok"
    assert data["environment"] == "test"
    assert isinstance(data["app_name"], str)
    assert "timestamp_utc" in data
