"""
ECG signal helpers - filtering, R-peak detection, rhythm statistics
"""

import numpy as np
from scipy.signal import butter, filtfilt, find_peaks

from . import config


def bandpass_filter(x, fs, low=0.5, high=40.0, order=4):
    x = np.asarray(x, dtype=float)
    # filtfilt pads 3 * (number of coefficients) samples on each side
    if len(x) <= 3 * (2 * order + 1):
        return x
    nyq = 0.5 * fs
    b, a = butter(order, [low / nyq, high / nyq], btype="band")
    return filtfilt(b, a, x)


def find_r_peaks(values, fs=config.ECG_SAMPLING_RATE):
    """
    Locate R-peaks in a raw ECG segment.

    The segment is band-passed, centred on its median and searched for
    peaks above half of the dominant positive deflection, with a 200 ms
    refractory distance between beats.

    Returns:
        np.ndarray: sample indices of the detected peaks
    """
    x = np.asarray(values, dtype=float)
    if len(x) < 3:
        return np.array([], dtype=int)

    x = bandpass_filter(x, fs)
    centred = x - np.median(x)
    top = centred.max()
    # filter round-off on a flat line is not a beat
    if top < 1e-6:
        return np.array([], dtype=int)

    peaks, _ = find_peaks(centred, height=0.5 * top, distance=max(1, int(0.2 * fs)))
    return peaks


def rr_intervals(peaks, fs=config.ECG_SAMPLING_RATE):
    """Successive R-R intervals in seconds"""
    peaks = np.asarray(peaks, dtype=float)
    if len(peaks) < 2:
        return np.array([], dtype=float)
    return np.diff(peaks) / fs


def estimate_heart_rate(values, fs=config.ECG_SAMPLING_RATE):
    """Heart rate in bpm from the mean R-R interval, or None below two beats"""
    rr = rr_intervals(find_r_peaks(values, fs), fs)
    if len(rr) == 0:
        return None
    return float(60.0 / np.mean(rr))


def rhythm_irregularity(values, fs=config.ECG_SAMPLING_RATE):
    """Coefficient of variation of the R-R intervals (0 when undetermined)"""
    rr = rr_intervals(find_r_peaks(values, fs), fs)
    if len(rr) < 2:
        return 0.0
    mean = np.mean(rr)
    if mean <= 0:
        return 0.0
    return float(np.std(rr) / mean)


def variability(values):
    """Population standard deviation"""
    values = np.asarray(values, dtype=float)
    if len(values) < 2:
        return 0.0
    return float(np.std(values))


def mean_successive_difference(values):
    values = np.asarray(values, dtype=float)
    if len(values) < 2:
        return 0.0
    return float(np.mean(np.abs(np.diff(values))))
