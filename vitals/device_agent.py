"""
Device Agent - BLE device discovery, connection and sensor streaming
Real radio I/O is out of reach here, so scanning, connecting and
notifications are simulated; notification payloads still go through the
same binary decoder a real GATT characteristic would.
"""

import logging
import threading
import time
from collections import defaultdict, deque

from . import config
from .ecg_signal import estimate_heart_rate
from .frame_decoder import (FrameDecodeError, determine_device_type,
                            encode_payload, process_raw_data)
from .mock_streams import make_frame_source

logger = logging.getLogger(__name__)

EVENTS = ("device_found", "scan_complete", "data", "error", "device_disconnected")

DEVICE_NAMES = {
    "ecg": "ECG Monitor",
    "oximeter": "MAX30102 Oximeter",
    "accelerometer": "Accel Band",
    "gps": "GPS Tracker",
}


class DeviceNotConnectedError(LookupError):
    """Raised when an operation targets a device that is not connected"""


def _type_from_id(device_id):
    for device_type, keyword in (("ecg", "ecg"), ("oximeter", "oximeter"),
                                 ("accelerometer", "accel"), ("gps", "gps")):
        if keyword in device_id:
            return device_type
    return "unknown"


class DeviceAgent:
    def __init__(self, mock_devices=None, scan_step=config.MOCK_SCAN_STEP_SEC,
                 connect_delay=config.MOCK_CONNECT_DELAY_SEC,
                 data_interval=config.MOCK_DATA_INTERVAL_SEC, seed=None):
        self.mock_mode = True
        self.mock_devices = list(config.MOCK_DEVICES if mock_devices is None else mock_devices)
        self.scan_step = scan_step
        self.connect_delay = connect_delay
        self.data_interval = data_interval
        self.seed = seed

        self._lock = threading.RLock()
        self._handlers = defaultdict(list)
        self._scan_timers = []
        self._monitors = {}          # device_id -> (thread, stop event)

        self.is_scanning = False
        self.discovered_devices = {}
        self.connected_devices = {}
        self.ecg_buffers = {}

        logger.info("DeviceAgent initialized, mock mode: %s", self.mock_mode)

    # ---------- events ----------
    def on(self, event, handler):
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        with self._lock:
            self._handlers[event].append(handler)

    def off(self, event, handler):
        with self._lock:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

    def add_listener(self, callback):
        """
        Subscribe `callback(event, payload)` to every event

        Returns:
            callable: removes the subscription
        """
        handlers = {}
        for event in EVENTS:
            handlers[event] = lambda payload=None, _event=event: callback(_event, payload)
            self.on(event, handlers[event])

        def remove():
            for event, handler in handlers.items():
                self.off(event, handler)

        return remove

    def emit(self, event, payload=None):
        with self._lock:
            handlers = list(self._handlers[event])
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Listener for %s failed", event)

    def remove_all_listeners(self):
        with self._lock:
            self._handlers.clear()

    # ---------- adapter state ----------
    def check_ble_state(self):
        return {"state": "PoweredOn", "available": True}

    def initialize(self):
        state = self.check_ble_state()
        if not state["available"]:
            logger.warning("BLE not available (%s)", state["state"])
        return state["available"]

    # ---------- scanning ----------
    def start_scan(self, on_device=None):
        """
        Report the mock devices one scan step apart, then scan_complete.
        Only names that classify as a known medical device are reported.
        """
        self.initialize()
        self.stop_scan()

        devices = [d for d in self.mock_devices if determine_device_type(d) != "unknown"]
        with self._lock:
            self.is_scanning = True
            for i, device in enumerate(devices):
                timer = threading.Timer((i + 1) * self.scan_step, self._report_device,
                                        args=(device, on_device))
                self._scan_timers.append(timer)
            self._scan_timers.append(
                threading.Timer((len(devices) + 1) * self.scan_step, self._finish_scan)
            )
            for timer in self._scan_timers:
                timer.daemon = True
                timer.start()

        logger.info("Starting mock device scan (%d devices)", len(devices))

    def _report_device(self, device, on_device=None):
        found = {"id": device["id"], "name": device["name"], "rssi": device.get("rssi")}
        with self._lock:
            self.discovered_devices[found["id"]] = found
        if on_device:
            on_device(found)
        self.emit("device_found", found)

    def _finish_scan(self):
        with self._lock:
            self.is_scanning = False
            self._scan_timers = []
        self.emit("scan_complete")

    def stop_scan(self):
        with self._lock:
            for timer in self._scan_timers:
                timer.cancel()
            self._scan_timers = []
            self.is_scanning = False

    # ---------- connections ----------
    def connect_to_device(self, device_id):
        """Connect (after the simulated link delay) and return the device info"""
        if self.connect_delay:
            time.sleep(self.connect_delay)

        known = self.discovered_devices.get(device_id)
        device_type = determine_device_type(known) if known else _type_from_id(device_id)
        name = known["name"] if known else DEVICE_NAMES.get(device_type, "Unknown Device")

        device = {"id": device_id, "name": name, "type": device_type}
        with self._lock:
            self.connected_devices[device_id] = device
        logger.info("Connected to %s (%s)", device_id, device_type)
        return {**device, "connected": True}

    def monitor_sensor_data(self, device, service_uuid=None, characteristic_uuid=None):
        """
        Start streaming notifications for a connected device.
        UUIDs are accepted for interface parity; the mock stream ignores them.

        Returns:
            bool: False when there is no stream for this device type

        Raises:
            DeviceNotConnectedError: the device is not connected
        """
        device_id = device["id"] if isinstance(device, dict) else device
        with self._lock:
            connected = self.connected_devices.get(device_id)
        if connected is None:
            raise DeviceNotConnectedError(device_id)

        source = make_frame_source(connected["type"], seed=self.seed)
        if source is None:
            logger.warning("No sensor stream for %s (type %s)", device_id, connected["type"])
            return False

        self._stop_monitor(device_id)
        stop = threading.Event()
        thread = threading.Thread(target=self._monitor_loop, args=(device_id, source, stop),
                                  daemon=True)
        with self._lock:
            self._monitors[device_id] = (thread, stop)
        thread.start()
        return True

    def _monitor_loop(self, device_id, source, stop):
        while not stop.wait(self.data_interval):
            try:
                self.handle_notification(device_id, encode_payload(source()))
            except DeviceNotConnectedError:
                break

    def _stop_monitor(self, device_id):
        with self._lock:
            monitor = self._monitors.pop(device_id, None)
        if monitor:
            thread, stop = monitor
            stop.set()
            if thread is not threading.current_thread():
                thread.join(timeout=1.0)

    def handle_notification(self, device_id, value):
        """
        Decode a characteristic value from a connected device and emit it

        Returns:
            dict | None: the decoded reading, None if the payload was rejected
        """
        with self._lock:
            device = self.connected_devices.get(device_id)
        if device is None:
            raise DeviceNotConnectedError(device_id)

        try:
            reading = process_raw_data(value, device["type"])
        except FrameDecodeError as e:
            logger.error("Error processing %s data: %s", device["type"], e)
            self.emit("error", {"device_id": device_id, "message": str(e)})
            return None

        if reading.get("type") == "ecg" and reading["values"]:
            buffer = self.ecg_buffers.setdefault(device_id, deque(maxlen=config.ECG_BUFFER_SAMPLES))
            buffer.extend(reading["values"])
            buffered_hr = estimate_heart_rate(list(buffer), reading["sampling_rate"])
            if buffered_hr is not None:
                reading["hr"] = buffered_hr

        reading["device_id"] = device_id
        self.emit("data", reading)
        return reading

    def disconnect_device(self, device_id):
        with self._lock:
            if device_id not in self.connected_devices:
                return
        self._stop_monitor(device_id)
        with self._lock:
            self.connected_devices.pop(device_id, None)
            self.ecg_buffers.pop(device_id, None)
        logger.info("Disconnected %s", device_id)
        self.emit("device_disconnected", device_id)

    def clean_up(self):
        self.stop_scan()
        for device_id in list(self.connected_devices):
            self.disconnect_device(device_id)
        self.remove_all_listeners()
