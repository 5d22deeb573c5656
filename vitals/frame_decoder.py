"""
Frame Decoder - Raw BLE characteristic values to typed sensor readings
Each device family sends a fixed-layout little-endian frame
"""

import base64
import binascii
import logging
import struct
from datetime import datetime

import numpy as np

from . import config
from .ecg_signal import estimate_heart_rate

logger = logging.getLogger(__name__)


class FrameDecodeError(ValueError):
    """Raised when a characteristic value cannot be turned into bytes"""


DEVICE_KEYWORDS = [
    ("ecg", ("ecg",)),
    ("oximeter", ("oximeter", "max30102", "pulse")),
    ("accelerometer", ("accel",)),
    ("gps", ("gps",)),
]


def determine_device_type(device):
    """Classify a device by its advertised name"""
    if isinstance(device, str):
        name = device
    elif device:
        name = device.get("name")
    else:
        name = None

    if not name:
        return "unknown"

    name = name.lower()
    for device_type, keywords in DEVICE_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return device_type
    return "unknown"


def decode_payload(raw):
    """Characteristic values arrive base64-encoded; bytes pass through"""
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw)
    if not isinstance(raw, str):
        raise FrameDecodeError(f"Unsupported payload type: {type(raw).__name__}")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FrameDecodeError(f"Invalid base64 payload: {e}") from e


def encode_payload(buffer):
    return base64.b64encode(buffer).decode("ascii")


def _now():
    return datetime.now().isoformat()


def _insufficient(reading_type):
    return {"type": reading_type, "timestamp": _now(), "error": "Insufficient data"}


def process_ecg_data(buffer, sampling_rate=config.ECG_SAMPLING_RATE):
    usable = len(buffer) - (len(buffer) % 2)
    values = np.frombuffer(buffer[:usable], dtype="<i2").astype(int).tolist()

    return {
        "type": "ecg",
        "timestamp": _now(),
        "values": values,
        "sampling_rate": sampling_rate,
        "hr": estimate_heart_rate(values, sampling_rate) if values else None,
    }


def process_oximeter_data(buffer):
    if len(buffer) < 2:
        return _insufficient("pulse_ox")

    heart_rate, spo2 = struct.unpack_from("<BB", buffer, 0)
    reading = {
        "type": "pulse_ox",
        "timestamp": _now(),
        "heart_rate": heart_rate,
        "spo2": spo2,
    }
    if len(buffer) >= 3:
        reading["perfusion_index"] = buffer[2] / 10
    return reading


def process_accelerometer_data(buffer):
    if len(buffer) < 6:
        return _insufficient("accelerometer")

    x, y, z = struct.unpack_from("<hhh", buffer, 0)
    return {"type": "accelerometer", "timestamp": _now(), "x": x, "y": y, "z": z}


def process_gps_data(buffer):
    if len(buffer) < 8:
        return _insufficient("gps")

    reading = {"type": "gps", "timestamp": _now()}
    if len(buffer) >= 20:
        # Extended frame: double precision position plus accuracy radius
        latitude, longitude, accuracy = struct.unpack_from("<ddf", buffer, 0)
        reading["accuracy"] = accuracy
    else:
        latitude, longitude = struct.unpack_from("<ff", buffer, 0)

    reading["latitude"] = latitude
    reading["longitude"] = longitude
    return reading


DECODERS = {
    "ecg": process_ecg_data,
    "oximeter": process_oximeter_data,
    "accelerometer": process_accelerometer_data,
    "gps": process_gps_data,
}


def process_raw_data(raw, device_type):
    """
    Decode a raw characteristic value for the given device type

    Args:
        raw: bytes or base64 string
        device_type: one of ecg, oximeter, accelerometer, gps, unknown

    Returns:
        dict: typed reading (with an "error" key when the frame is short)

    Raises:
        FrameDecodeError: payload is not valid base64
    """
    buffer = decode_payload(raw)

    decoder = DECODERS.get(device_type)
    if decoder is None:
        logger.debug("No decoder for device type %r, returning hex", device_type)
        return {"type": "unknown", "timestamp": _now(), "raw": buffer.hex()}

    reading = decoder(buffer)
    if "error" in reading:
        logger.warning("Short %s frame (%d bytes)", device_type, len(buffer))
    return reading
