from flask import Flask, jsonify, request
import logging
import os
import threading

from vitals import config
from vitals.frame_decoder import FrameDecodeError, determine_device_type, process_raw_data
from vitals.device_agent import DeviceAgent, DeviceNotConnectedError
from vitals.analyzer_agent import AnalyzerAgent
from vitals.detection_agent import DetectionAgent
from vitals.readings_agent import ReadingsAgent, parse_timestamp
from vitals.profile_agent import ProfileAgent
from vitals.alert_agent import AlertAgent
from vitals.ecg_signal import estimate_heart_rate

logger = logging.getLogger("vitals.app")


# ============================================================
# APP
# ============================================================
app = Flask(__name__)

PATIENT_ID = os.environ.get("VITALS_PATIENT_ID", "patient_001")
ECG_SEGMENTS_FOR_ASSESSMENT = 10


# ============================================================
# AGENTS
# ============================================================
os.makedirs(config.DATA_DIR, exist_ok=True)

device_agent = DeviceAgent()
analyzer_agent = AnalyzerAgent()
detection_agent = DetectionAgent()
readings_agent = ReadingsAgent(state_file=config.READINGS_FILE)
profile_agent = ProfileAgent(patient_id=PATIENT_ID, state_file=config.PROFILE_FILE)
alert_agent = AlertAgent(patient_id=PATIENT_ID, state_file=config.ALERTS_FILE)

latest_analysis = {}
state_lock = threading.Lock()


# ============================================================
# READING PIPELINE
# ============================================================
def analyze_reading(reading_type, data):
    """Run the single-reading analysis that fits this reading type"""
    if reading_type == "ecg":
        return analyzer_agent.analyze_ecg(data)
    if reading_type == "pulse_ox" and data.get("spo2") is not None:
        return analyzer_agent.analyze_oxygen_saturation(data["spo2"])
    if reading_type == "heart_rate":
        return analyzer_agent.analyze_heart_rate(data["heart_rate"], profile_agent.state.get("age"))
    if reading_type == "blood_pressure":
        return analyzer_agent.analyze_blood_pressure(data["systolic"], data["diastolic"])
    return None


def ingest_reading(reading_type, data):
    """Store, analyze and (if needed) log an alert for one reading"""
    with state_lock:
        reading_id = readings_agent.store_reading(reading_type, data)
        analysis = analyze_reading(reading_type, data)
        alert = None
        if analysis is not None:
            latest_analysis[reading_type] = analysis
            alert = alert_agent.record(reading_type, analysis, reading_id=reading_id)
    return reading_id, analysis, alert


def on_device_data(reading):
    if "error" in reading:
        logger.warning("Dropping %s reading: %s", reading.get("type"), reading["error"])
        return
    if reading.get("type") == "unknown":
        return
    ingest_reading(reading["type"], reading)


device_agent.on("data", on_device_data)
device_agent.on("error", lambda payload: logger.error("Device error: %s", payload))


def collect_health_data(start=None, end=None):
    """Shape stored readings for DetectionAgent.assess_cardiovascular_risk"""
    hr_records = readings_agent.get_readings("heart_rate", start, end)
    ox_records = readings_agent.get_readings("pulse_ox", start, end)
    bp_records = readings_agent.get_readings("blood_pressure", start, end)
    ecg_records = readings_agent.get_readings("ecg", start, end)

    heart_rate = [{"value": r["data"]["heart_rate"]} for r in hr_records]
    heart_rate += [{"value": r["data"]["heart_rate"]} for r in ox_records
                   if r["data"].get("heart_rate") is not None]

    return {
        "heart_rate": heart_rate,
        "spo2": [{"value": r["data"]["spo2"]} for r in ox_records if r["data"].get("spo2") is not None],
        "blood_pressure": [r["data"] for r in bp_records],
        "ecg": [r["data"] for r in ecg_records[-ECG_SEGMENTS_FOR_ASSESSMENT:]],
    }


def collect_risk_records(start=None, end=None):
    """Shape stored readings for AnalyzerAgent.analyze_cardiovascular_risk"""
    records = []
    for reading_type in ("blood_pressure", "heart_rate", "ecg", "pulse_ox"):
        records.extend(readings_agent.get_readings(reading_type, start, end))
    return records


def _json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValueError("Expected a JSON object")
    return body


def _number(body, field):
    value = body.get(field)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{field}' must be a number")
    return value


MANUAL_FIELDS = {
    "heart_rate": ("heart_rate",),
    "pulse_ox": ("spo2",),
    "blood_pressure": ("systolic", "diastolic"),
}


# ============================================================
# ROUTES
# ============================================================
@app.errorhandler(ValueError)
def handle_bad_input(e):
    return jsonify({"success": False, "error": str(e)}), 400


@app.route("/api/status")
def get_status():
    return jsonify({
        "mock_mode": device_agent.mock_mode,
        "scanning": device_agent.is_scanning,
        "connected_devices": len(device_agent.connected_devices),
        "reading_types": readings_agent.get_types(),
        "alerts": alert_agent.get_current_status(),
    })


# ---------------- Device endpoints ----------------
@app.route("/api/devices/scan", methods=["POST"])
def scan_devices():
    device_agent.start_scan()
    return jsonify({"success": True, "scanning": True})


@app.route("/api/devices")
def list_devices():
    return jsonify({
        "scanning": device_agent.is_scanning,
        "discovered": list(device_agent.discovered_devices.values()),
        "connected": list(device_agent.connected_devices.values()),
    })


@app.route("/api/devices/<device_id>/connect", methods=["POST"])
def connect_device(device_id):
    device = device_agent.connect_to_device(device_id)
    streaming = device_agent.monitor_sensor_data(device)
    return jsonify({"success": True, "device": device, "streaming": streaming})


@app.route("/api/devices/<device_id>/disconnect", methods=["POST"])
def disconnect_device(device_id):
    if device_id not in device_agent.connected_devices:
        return jsonify({"success": False, "error": "Device not connected"}), 404
    device_agent.disconnect_device(device_id)
    return jsonify({"success": True})


@app.route("/api/devices/<device_id>/notify", methods=["POST"])
def device_notification(device_id):
    body = _json_body()
    try:
        reading = device_agent.handle_notification(device_id, body.get("value", ""))
    except DeviceNotConnectedError:
        return jsonify({"success": False, "error": "Device not connected"}), 404
    if reading is None:
        return jsonify({"success": False, "error": "Invalid payload"}), 400
    return jsonify({"success": True, "reading": reading})


@app.route("/api/decode", methods=["POST"])
def decode_frame():
    body = _json_body()
    device_type = body.get("device_type")
    if not device_type:
        device_type = determine_device_type(body.get("device_name"))
    try:
        reading = process_raw_data(body.get("payload", ""), device_type)
    except FrameDecodeError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    return jsonify({"success": True, "reading": reading})


# ---------------- Reading endpoints ----------------
@app.route("/api/readings/<reading_type>", methods=["GET"])
def get_readings(reading_type):
    start = request.args.get("start")
    end = request.args.get("end")
    return jsonify({"readings": readings_agent.get_readings(reading_type, start, end)})


@app.route("/api/readings/<reading_type>", methods=["POST"])
def log_reading(reading_type):
    fields = MANUAL_FIELDS.get(reading_type)
    if fields is None:
        return jsonify({"success": False, "error": f"Cannot log {reading_type} manually"}), 400

    body = _json_body()
    data = {field: _number(body, field) for field in fields}
    if body.get("timestamp") is not None:
        data["timestamp"] = parse_timestamp(body["timestamp"]).isoformat()

    reading_id, analysis, alert = ingest_reading(reading_type, data)
    return jsonify({"success": True, "id": reading_id, "analysis": analysis, "alert": alert}), 201


@app.route("/api/readings/<reading_type>/latest")
def get_latest_reading(reading_type):
    reading = readings_agent.get_latest_reading(reading_type)
    if reading is None:
        return jsonify({"error": "No data available"}), 404
    return jsonify(reading)


@app.route("/api/readings/clear", methods=["POST"])
def clear_readings():
    with state_lock:
        readings_agent.clear_all_data()
        latest_analysis.clear()
    return jsonify({"status": "cleared"})


@app.route("/api/readings/sync", methods=["POST"])
def sync_readings():
    return jsonify({"synced": readings_agent.mark_synced()})


# ---------------- Analysis endpoints ----------------
@app.route("/api/analyze/<kind>", methods=["POST"])
def analyze(kind):
    body = _json_body()

    if kind == "blood_pressure":
        result = analyzer_agent.analyze_blood_pressure(_number(body, "systolic"), _number(body, "diastolic"))
    elif kind == "spo2":
        result = analyzer_agent.analyze_oxygen_saturation(_number(body, "spo2"))
    elif kind == "heart_rate":
        age = profile_agent.state.get("age") if body.get("age") is None else _number(body, "age")
        result = analyzer_agent.analyze_heart_rate(_number(body, "heart_rate"), age)
    elif kind == "ecg":
        values = body.get("values") or []
        fs = config.ECG_SAMPLING_RATE if body.get("sampling_rate") is None else _number(body, "sampling_rate")
        if fs <= 0:
            raise ValueError("'sampling_rate' must be positive")
        hr = body.get("hr")
        if hr is None and values:
            hr = estimate_heart_rate(values, fs)
        result = analyzer_agent.analyze_ecg({"values": values, "sampling_rate": fs, "hr": hr})
    else:
        return jsonify({"success": False, "error": f"Unknown analysis: {kind}"}), 404

    return jsonify(result)


@app.route("/api/analysis/latest")
def get_latest_analysis():
    return jsonify(latest_analysis)


@app.route("/api/assessment")
def get_assessment():
    start = request.args.get("start")
    end = request.args.get("end")
    assessment = detection_agent.assess_cardiovascular_risk(collect_health_data(start, end))
    assessment["cardiovascular_risk"] = analyzer_agent.analyze_cardiovascular_risk(
        profile_agent.risk_input(), collect_risk_records(start, end)
    )
    return jsonify(assessment)


# ---------------- Profile endpoints ----------------
@app.route("/api/profile", methods=["GET"])
def get_profile():
    return jsonify(profile_agent.get_profile())


@app.route("/api/profile", methods=["POST"])
def update_profile():
    profile = profile_agent.update_profile(_json_body())
    return jsonify({"success": True, "profile": profile})


# ---------------- Alert endpoints ----------------
@app.route("/api/alerts")
def get_alert_history():
    limit = request.args.get("limit", 10, type=int)
    return jsonify({"alerts": alert_agent.get_alert_history(limit)})


@app.route("/api/alerts/acknowledge/<int:alert_id>", methods=["POST"])
def acknowledge_alert(alert_id):
    success = alert_agent.acknowledge_alert(alert_id)
    return jsonify({"success": success})


# ============================================================
# MAIN
# ============================================================
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("Starting Vitals Monitoring Server...")
    print("=" * 60)
    print(f"Mock BLE: {'✓ ON' if device_agent.mock_mode else '✗ OFF'}")
    print(f"Data directory: {config.DATA_DIR}")
    print(f"Stored reading types: {', '.join(readings_agent.get_types()) or 'none'}")

    profile = profile_agent.get_profile()
    if profile.get("age") is None:
        print("Profile: ⚠ Age not set - configure via POST /api/profile")
    else:
        print(f"Profile: ✓ Age {profile['age']}")

    status = alert_agent.get_current_status()
    print(f"Alerts: ✓ Initialized ({status['total_alerts']} logged, {status['unacknowledged']} unacknowledged)")

    print("=" * 60)
    print("Endpoints:")
    print("  Status:      http://localhost:5000/api/status")
    print("  Devices:     http://localhost:5000/api/devices")
    print("  Assessment:  http://localhost:5000/api/assessment")
    print("=" * 60)

    try:
        app.run(debug=True, threaded=True, use_reloader=False)
    finally:
        device_agent.clean_up()
