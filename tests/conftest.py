import os
import struct
import tempfile

import numpy as np
import pytest

# Point the app's state files at a scratch directory before anything imports vitals.config
os.environ.setdefault("VITALS_DATA_DIR", tempfile.mkdtemp(prefix="vitals-test-"))


def spike_train(positions, length, height=500, width=5, base=2048):
    """Bare R-spikes at the given sample positions on a flat baseline"""
    values = np.full(length, base)
    for p in positions:
        values[p:p + width] = base + height
    return values.tolist()


def alternating_positions(first, short, long, length):
    positions, p, use_short = [], first, True
    while p < length - 50:
        positions.append(p)
        p += short if use_short else long
        use_short = not use_short
    return positions


@pytest.fixture
def regular_ecg():
    return spike_train(range(100, 2400, 200), 2500)


@pytest.fixture
def irregular_ecg():
    # R-R alternating 150 / 300 samples -> coefficient of variation 1/3
    return spike_train(alternating_positions(100, 150, 300, 2500), 2500)


@pytest.fixture
def mildly_irregular_ecg():
    # R-R alternating 160 / 260 samples -> coefficient of variation ~0.24
    return spike_train(alternating_positions(100, 160, 260, 2500), 2500)


@pytest.fixture
def oximeter_frame():
    return struct.pack("<BBB", 72, 98, 25)
