import base64

import pytest

import app as server
from vitals.alert_agent import AlertAgent
from vitals.profile_agent import ProfileAgent
from vitals.readings_agent import ReadingsAgent


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(server, "readings_agent", ReadingsAgent(state_file=str(tmp_path / "readings.json")))
    monkeypatch.setattr(server, "profile_agent", ProfileAgent("patient_test", state_file=str(tmp_path / "profile.json")))
    monkeypatch.setattr(server, "alert_agent", AlertAgent("patient_test", state_file=str(tmp_path / "alerts.json")))
    monkeypatch.setattr(server.device_agent, "connect_delay", 0)
    monkeypatch.setattr(server.device_agent, "data_interval", 60)
    server.latest_analysis.clear()

    server.app.config["TESTING"] = True
    with server.app.test_client() as client:
        yield client

    for device_id in list(server.device_agent.connected_devices):
        server.device_agent.disconnect_device(device_id)


def b64(data):
    return base64.b64encode(data).decode()


def test_status(client):
    body = client.get("/api/status").get_json()
    assert body["mock_mode"] is True
    assert body["reading_types"] == []


def test_log_blood_pressure_creates_alert(client):
    resp = client.post("/api/readings/blood_pressure", json={"systolic": 150, "diastolic": 95})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["analysis"]["risk_level"] == "high"
    assert body["alert"]["source"] == "blood_pressure"

    latest = client.get("/api/readings/blood_pressure/latest").get_json()
    assert latest["data"] == {"systolic": 150, "diastolic": 95}

    alerts = client.get("/api/alerts").get_json()["alerts"]
    assert len(alerts) == 1
    ack = client.post(f"/api/alerts/acknowledge/{alerts[0]['alert_id']}").get_json()
    assert ack["success"]


def test_log_reading_validation(client):
    assert client.post("/api/readings/blood_pressure", json={"systolic": "high"}).status_code == 400
    assert client.post("/api/readings/gps", json={"latitude": 1.0}).status_code == 400
    assert client.post("/api/readings/heart_rate", data="nope").status_code == 400


def test_latest_missing(client):
    assert client.get("/api/readings/ecg/latest").status_code == 404


def test_readings_time_window(client):
    for ts in ("2026-01-01T08:00:00", "2026-01-02T08:00:00"):
        client.post("/api/readings/heart_rate", json={"heart_rate": 70, "timestamp": ts})

    body = client.get("/api/readings/heart_rate?start=2026-01-02T00:00:00").get_json()
    assert [r["timestamp"] for r in body["readings"]] == ["2026-01-02T08:00:00"]
    assert client.get("/api/readings/heart_rate?start=yesterday").status_code == 400


def test_decode_by_device_name(client):
    resp = client.post("/api/decode", json={"device_name": "MAX30102 Oximeter",
                                            "payload": b64(bytes([72, 98]))})
    reading = resp.get_json()["reading"]
    assert reading["type"] == "pulse_ox"
    assert reading["spo2"] == 98


def test_decode_invalid_payload(client):
    resp = client.post("/api/decode", json={"device_type": "ecg", "payload": "%%%"})
    assert resp.status_code == 400


@pytest.mark.parametrize("kind, payload, level", [
    ("spo2", {"spo2": 88}, "critical"),
    ("blood_pressure", {"systolic": 118, "diastolic": 76}, "normal"),
    ("heart_rate", {"heart_rate": 160}, "high"),
    ("ecg", {"hr": 45, "values": []}, "moderate"),
])
def test_analyze(client, kind, payload, level):
    assert client.post(f"/api/analyze/{kind}", json=payload).get_json()["risk_level"] == level


def test_analyze_unknown_kind(client):
    assert client.post("/api/analyze/cholesterol", json={}).status_code == 404


def test_assessment_uses_stored_readings(client):
    for hr in (110, 120, 115):
        client.post("/api/readings/heart_rate", json={"heart_rate": hr})
    client.post("/api/profile", json={"smoker": True})

    body = client.get("/api/assessment").get_json()
    assert body["overall_risk"] == "moderate"
    assert body["detailed_analysis"]["heart_rate"]["conditions"] == ["Tachycardia"]
    assert body["cardiovascular_risk"]["risk_score"] == 2


def test_profile_roundtrip(client):
    resp = client.post("/api/profile", json={"age": 70, "diabetic": True})
    assert resp.get_json()["profile"]["age"] == 70
    assert client.get("/api/profile").get_json()["diabetic"] is True
    assert client.post("/api/profile", json={"age": -1}).status_code == 400


def test_device_notification_is_stored(client):
    resp = client.post("/api/devices/mock-oximeter-001/connect")
    assert resp.get_json()["device"]["type"] == "oximeter"

    resp = client.post("/api/devices/mock-oximeter-001/notify", json={"value": b64(bytes([80, 89, 12]))})
    assert resp.get_json()["reading"]["spo2"] == 89

    stored = client.get("/api/readings/pulse_ox").get_json()["readings"]
    assert len(stored) == 1
    assert client.get("/api/analysis/latest").get_json()["pulse_ox"]["risk_level"] == "critical"

    assert client.post("/api/devices/mock-oximeter-001/disconnect").get_json()["success"]
    assert client.post("/api/devices/mock-oximeter-001/disconnect").status_code == 404


def test_notify_unconnected_device(client):
    resp = client.post("/api/devices/mock-ecg-001/notify", json={"value": b64(b"\x00\x01")})
    assert resp.status_code == 404


@pytest.mark.parametrize("timestamp", ["soon", 1700000000])
def test_bad_timestamp_rejected_and_store_stays_readable(client, timestamp):
    client.post("/api/readings/heart_rate", json={"heart_rate": 70, "timestamp": "2026-01-02T08:00:00"})
    resp = client.post("/api/readings/heart_rate", json={"heart_rate": 70, "timestamp": timestamp})
    assert resp.status_code == 400

    assert len(client.get("/api/readings/heart_rate").get_json()["readings"]) == 1
    assert client.get("/api/readings/heart_rate/latest").status_code == 200
    assert client.get("/api/assessment").status_code == 200


def test_offset_timestamp_mixes_with_local_ones(client):
    client.post("/api/readings/heart_rate", json={"heart_rate": 70, "timestamp": "2026-01-03T09:00:00"})
    resp = client.post("/api/readings/heart_rate",
                       json={"heart_rate": 72, "timestamp": "2026-01-01T09:00:00+00:00"})
    assert resp.status_code == 201

    readings = client.get("/api/readings/heart_rate").get_json()["readings"]
    assert [r["data"]["heart_rate"] for r in readings] == [72, 70]


@pytest.mark.parametrize("kind, payload", [
    ("heart_rate", {"heart_rate": 100, "age": "forty"}),
    ("ecg", {"values": [2048] * 500, "sampling_rate": 0}),
    ("ecg", {"values": [2048] * 500, "sampling_rate": "fast"}),
])
def test_analyze_rejects_bad_parameters(client, kind, payload):
    assert client.post(f"/api/analyze/{kind}", json=payload).status_code == 400


def test_analyze_heart_rate_with_explicit_age(client):
    body = client.post("/api/analyze/heart_rate", json={"heart_rate": 100, "age": 40}).get_json()
    assert body["max_heart_rate"] == 180
