"""
Tests for the HTTP routes
"""


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert data["version"] == "1.0.0"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "OK"
    assert data["timestamp"].endswith("Z")


def test_get_station_default(client):
    response = client.get("/api/station")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["id"] == "ESP32_001"
    assert body["data"]["status"] == "offline"


def test_post_then_get_reflects_update(client):
    before = client.get("/api/station").json()["data"]

    response = client.post(
        "/api/station/data",
        json={"id": "ESP32_001", "status": "charging", "batteryLevel": 42},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["batteryLevel"] == 42

    data = client.get("/api/station").json()["data"]
    assert data["id"] == "ESP32_001"
    assert data["status"] == "charging"
    assert data["batteryLevel"] == 42
    for field in ("name", "chargingPower", "chargingCurrent", "voltage", "temperature", "chargingTime"):
        assert data[field] == before[field]
    assert data["lastUpdate"] != before["lastUpdate"]


def test_post_missing_id(client):
    before = client.get("/api/station").json()["data"]
    response = client.post("/api/station/data", json={"status": "charging"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "id" in body["error"]
    assert client.get("/api/station").json()["data"] == before


def test_post_missing_status(client):
    response = client.post("/api/station/data", json={"id": "ESP32_001", "batteryLevel": 5})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Missing required fields: status"}


def test_post_out_of_range_value(client):
    response = client.post(
        "/api/station/data",
        json={"id": "ESP32_001", "status": "charging", "batteryLevel": 120},
    )
    assert response.status_code == 400
    assert "batteryLevel" in response.json()["error"]


def test_post_invalid_json(client):
    response = client.post(
        "/api/station/data",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_post_non_object_body(client):
    response = client.post("/api/station/data", json=[{"id": "ESP32_001", "status": "charging"}])
    assert response.status_code == 400
    assert response.json()["error"] == "Request body must be a JSON object"


def test_post_internal_failure_hides_details(client, store, monkeypatch):
    async def broken_merge(update):
        raise RuntimeError("lock table corrupted")

    monkeypatch.setattr(store, "merge", broken_merge)
    response = client.post("/api/station/data", json={"id": "ESP32_001", "status": "charging"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}
