"""
Runtime configuration for the vitals agents.
Every value can be overridden through the environment.
"""

import os

# ============================================================
# STORAGE
# ============================================================
DATA_DIR = os.environ.get("VITALS_DATA_DIR", "data")

READINGS_FILE = os.path.join(DATA_DIR, "readings.json")
PROFILE_FILE = os.path.join(DATA_DIR, "patient_profile.json")
ALERTS_FILE = os.path.join(DATA_DIR, "alert_state.json")

MAX_READINGS_PER_TYPE = int(os.environ.get("VITALS_MAX_READINGS", "1000"))

# ============================================================
# ECG
# ============================================================
ECG_SAMPLING_RATE = 250      # Hz
ECG_FRAME_SAMPLES = 250      # 1 second per notification
ECG_BUFFER_SECONDS = 10
ECG_BUFFER_SAMPLES = ECG_SAMPLING_RATE * ECG_BUFFER_SECONDS

# ============================================================
# MOCK BLE
# ============================================================
MOCK_SCAN_STEP_SEC = float(os.environ.get("VITALS_MOCK_SCAN_STEP", "1.0"))
MOCK_CONNECT_DELAY_SEC = float(os.environ.get("VITALS_MOCK_CONNECT_DELAY", "1.5"))
MOCK_DATA_INTERVAL_SEC = float(os.environ.get("VITALS_MOCK_DATA_INTERVAL", "1.0"))

MOCK_DEVICES = [
    {"id": "mock-ecg-001", "name": "ECG Monitor", "rssi": -65},
    {"id": "mock-oximeter-001", "name": "MAX30102 Oximeter", "rssi": -70},
    {"id": "mock-accel-001", "name": "Accel Band", "rssi": -72},
    {"id": "mock-gps-001", "name": "GPS Tracker", "rssi": -80},
]

# ============================================================
# ALERTS
# ============================================================
ALERT_HISTORY_SIZE = 100
ALERT_COOLDOWN_MINUTES = int(os.environ.get("VITALS_ALERT_COOLDOWN", "30"))
