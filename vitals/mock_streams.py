"""
Synthetic BLE payloads for development without hardware.
Frames use the same byte layout the decoder expects.
"""

import struct

import numpy as np

from . import config


class MockECGStream:
    """
    Continuous ECG waveform cut into fixed-size int16 frames.
    Beat phase carries over between frames so R-R spacing stays realistic.
    """

    def __init__(self, fs=config.ECG_SAMPLING_RATE, base_value=2048, amplitude=500,
                 bpm=None, noise=100, seed=None):
        self.fs = fs
        self.base_value = base_value
        self.amplitude = amplitude
        self.noise = noise
        self.rng = np.random.default_rng(seed)
        self.drift = bpm is None
        self.bpm = float(bpm) if bpm is not None else float(self.rng.uniform(60, 100))
        self._phase = 0

    def next_samples(self, n=config.ECG_FRAME_SAMPLES):
        period = int(round(self.fs * 60.0 / self.bpm))
        pos = (self._phase + np.arange(n)) % period

        base, amp = self.base_value, self.amplitude
        values = np.full(n, float(base))
        values[(pos > 50) & (pos < 60)] = base - amp * 0.2     # Q
        values[(pos >= 60) & (pos < 65)] = base + amp          # R
        values[(pos >= 65) & (pos < 75)] = base - amp * 0.3    # S
        values[(pos >= 75) & (pos < 120)] = base + amp * 0.2   # T
        values += (self.rng.random(n) - 0.5) * self.noise

        self._phase = int((self._phase + n) % period)
        if self.drift:
            self.bpm = float(np.clip(self.bpm + self.rng.normal(0, 1.0), 60, 100))

        return np.round(values).astype(int)

    def next_frame(self, n=config.ECG_FRAME_SAMPLES):
        return self.next_samples(n).astype("<i2").tobytes()


def mock_oximeter_frame(rng):
    heart_rate = int(rng.integers(70, 90))
    spo2 = int(rng.integers(95, 100))
    perfusion = int(rng.integers(10, 50))     # 1.0 - 5.0 %
    return struct.pack("<BBB", heart_rate, spo2, perfusion)


def mock_accelerometer_frame(rng):
    # milli-g, device lying flat
    x, y = (int(v) for v in rng.integers(-50, 50, size=2))
    z = 1000 + int(rng.integers(-30, 30))
    return struct.pack("<hhh", x, y, z)


def mock_gps_frame(rng, latitude=40.7128, longitude=-74.0060):
    return struct.pack(
        "<ff",
        latitude + float(rng.normal(0, 1e-4)),
        longitude + float(rng.normal(0, 1e-4)),
    )


def make_frame_source(device_type, seed=None):
    """Return a zero-argument callable producing the next frame, or None"""
    if device_type == "ecg":
        return MockECGStream(seed=seed).next_frame

    rng = np.random.default_rng(seed)
    generators = {
        "oximeter": mock_oximeter_frame,
        "accelerometer": mock_accelerometer_frame,
        "gps": mock_gps_frame,
    }
    generator = generators.get(device_type)
    if generator is None:
        return None
    return lambda: generator(rng)
