import pytest

from vitals.detection_agent import DetectionAgent


@pytest.fixture
def detector():
    return DetectionAgent()


def values(*numbers):
    return [{"value": n} for n in numbers]


def bp(systolic, diastolic):
    return {"systolic": systolic, "diastolic": diastolic}


@pytest.mark.parametrize("method", [
    "analyze_heart_rate", "analyze_blood_pressure", "analyze_oxygen_saturation", "analyze_ecg",
])
def test_empty_series_is_unknown(detector, method):
    assert getattr(detector, method)([]) == {"risk": "unknown"}


def test_sustained_tachycardia(detector):
    result = detector.analyze_heart_rate(values(110, 120, 115))
    assert result["risk"] == "moderate"
    assert result["conditions"] == ["Tachycardia"]
    assert result["metrics"]["average_hr"] == pytest.approx(115)
    assert result["metrics"]["variability"] == pytest.approx(7.5)


def test_sustained_bradycardia(detector):
    result = detector.analyze_heart_rate(values(50, 52, 55, 70))
    assert result["conditions"] == ["Bradycardia"]
    assert result["metrics"]["low_hr_percentage"] == pytest.approx(0.75)


def test_jumpy_heart_rate_flags_arrhythmia(detector):
    result = detector.analyze_heart_rate(values(60, 100, 60, 100))
    assert result["risk"] == "high"
    assert result["conditions"] == ["Arrhythmia"]


def test_blood_pressure_mostly_hypertensive(detector):
    result = detector.analyze_blood_pressure([bp(150, 95)] * 4)
    assert result["risk"] == "high"
    assert result["conditions"] == ["Hypertension"]
    assert result["metrics"]["average_systolic"] == 150


def test_blood_pressure_sometimes_hypertensive(detector):
    result = detector.analyze_blood_pressure([bp(150, 95), bp(150, 95), bp(115, 75), bp(118, 76)])
    assert result["risk"] == "moderate"
    assert result["conditions"] == ["Hypertension"]


def test_blood_pressure_mixed_conditions(detector):
    readings = [bp(150, 95), bp(150, 95), bp(85, 55), bp(85, 55), bp(115, 75)]
    result = detector.analyze_blood_pressure(readings)
    assert result["risk"] == "moderate"
    assert result["conditions"] == ["Hypertension", "Hypotension"]


def test_hypertension_share_thresholds(detector):
    readings = [bp(150, 95)] * 8 + [bp(85, 55)] * 4
    result = detector.analyze_blood_pressure(readings)
    # 8/12 hypertensive is not above 0.7, 4/12 hypotensive is above 0.3
    assert result["risk"] == "moderate"

    readings = [bp(150, 95)] * 8 + [bp(85, 55)] * 2
    assert detector.analyze_blood_pressure(readings)["risk"] == "high"


def test_critical_oxygen(detector):
    result = detector.analyze_oxygen_saturation(values(88, 98, 98, 98, 98))
    assert result["risk"] == "high"
    assert result["conditions"] == ["Severe Hypoxemia", "Possible Respiratory Distress"]


def test_low_oxygen(detector):
    result = detector.analyze_oxygen_saturation(values(93, 94, 98, 98))
    assert result["risk"] == "moderate"
    assert result["conditions"] == ["Hypoxemia"]


def test_ecg_segments(detector, irregular_ecg, regular_ecg):
    irregular = detector.analyze_ecg([{"values": regular_ecg}, {"values": irregular_ecg}])
    assert irregular["risk"] == "high"
    assert irregular["conditions"] == ["Arrhythmia"]
    assert irregular["metrics"]["analyzed_segments"] == 2

    empty = detector.analyze_ecg([{"hr": 70}])
    assert empty["risk"] == "low"
    assert empty["metrics"]["analyzed_segments"] == 0


def test_assessment_averages_known_risks(detector):
    assessment = detector.assess_cardiovascular_risk({
        "heart_rate": values(110, 120, 115),
        "spo2": values(98, 99),
    })
    # moderate (2) and low (1) average to 1.5
    assert assessment["overall_risk"] == "moderate"
    assert assessment["possible_diseases"] == ["Arrhythmia", "Heart Failure"]
    assert assessment["detailed_analysis"]["blood_pressure"] == {"risk": "unknown"}


def test_assessment_without_data(detector):
    assessment = detector.assess_cardiovascular_risk({})
    assert assessment["overall_risk"] == "unknown"
    assert assessment["possible_diseases"] == []


def test_disease_mapping_is_deduplicated_in_order(detector):
    diseases = detector.map_conditions_to_diseases(["Tachycardia", "Arrhythmia", "Possible Respiratory Distress"])
    assert diseases == ["Arrhythmia", "Heart Failure", "Atrial Fibrillation"]
