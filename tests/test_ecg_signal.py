import pytest

from vitals.ecg_signal import (bandpass_filter, estimate_heart_rate, find_r_peaks,
                               mean_successive_difference, rhythm_irregularity,
                               variability)
from vitals.mock_streams import MockECGStream


def test_heart_rate_from_mock_waveform():
    values = MockECGStream(bpm=75, noise=0, seed=0).next_samples(2500)
    assert estimate_heart_rate(values, 250) == pytest.approx(75, abs=2)


def test_heart_rate_from_noisy_waveform():
    values = MockECGStream(bpm=90, seed=7).next_samples(2500)
    assert estimate_heart_rate(values, 250) == pytest.approx(90, abs=3)


def test_one_peak_per_beat(regular_ecg):
    assert len(find_r_peaks(regular_ecg, 250)) == 12


def test_single_beat_gives_no_rate():
    values = MockECGStream(bpm=60, noise=0).next_samples(250)
    assert estimate_heart_rate(values, 250) is None


def test_flat_signal_has_no_peaks():
    assert len(find_r_peaks([2048] * 500, 250)) == 0


def test_regular_rhythm_is_not_irregular(regular_ecg):
    assert rhythm_irregularity(regular_ecg, 250) < 0.05


def test_irregular_rhythm(irregular_ecg, mildly_irregular_ecg):
    assert rhythm_irregularity(irregular_ecg, 250) > 0.3
    assert 0.2 < rhythm_irregularity(mildly_irregular_ecg, 250) < 0.3


def test_bandpass_passthrough_for_short_signal():
    assert list(bandpass_filter([1, 2, 3], 250)) == [1, 2, 3]


def test_variability_helpers():
    assert variability([70, 70, 70, 70]) == 0
    assert variability([1]) == 0
    assert variability([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)
    assert mean_successive_difference([60, 90, 60]) == pytest.approx(30)
    assert mean_successive_difference([60]) == 0
