"""
Detection Agent - Series-Level Condition Detection
Looks at a history of readings per vital and maps what it finds to
possible cardiovascular and respiratory diseases
"""

import logging

import numpy as np

from . import config
from .analyzer_agent import RISK_ORDER
from .ecg_signal import mean_successive_difference, rhythm_irregularity

logger = logging.getLogger(__name__)

RISK_SCORES = {"low": 1, "moderate": 2, "high": 3}

DISEASE_MAP = {
    "Hypertension": ["Hypertension", "Coronary Artery Disease", "Stroke Risk"],
    "Tachycardia": ["Arrhythmia", "Heart Failure"],
    "Bradycardia": ["Arrhythmia", "Heart Block"],
    "Arrhythmia": ["Arrhythmia", "Atrial Fibrillation", "Heart Failure"],
    "Hypoxemia": ["Respiratory Insufficiency", "Heart Failure"],
    "Severe Hypoxemia": ["Respiratory Failure", "Heart Failure", "Cardiovascular Disease"],
}


def _higher(current, level):
    return level if RISK_ORDER.index(level) > RISK_ORDER.index(current) else current


class DetectionAgent:
    def analyze_heart_rate(self, readings):
        """
        Args:
            readings: list of {"value": bpm, ...}
        """
        if not readings:
            return {"risk": "unknown"}

        values = np.array([r["value"] for r in readings], dtype=float)
        high_hr_percentage = float(np.mean(values > 100))
        low_hr_percentage = float(np.mean(values < 60))
        variability = mean_successive_difference(values)

        risk = "low"
        conditions = []

        if high_hr_percentage > 0.5:
            risk = _higher(risk, "moderate")
            conditions.append("Tachycardia")

        if low_hr_percentage > 0.5:
            risk = _higher(risk, "moderate")
            conditions.append("Bradycardia")

        if variability > 20:
            risk = _higher(risk, "high")
            conditions.append("Arrhythmia")

        return {
            "risk": risk,
            "conditions": conditions,
            "metrics": {
                "average_hr": float(values.mean()),
                "high_hr_percentage": high_hr_percentage,
                "low_hr_percentage": low_hr_percentage,
                "variability": variability,
            },
        }

    def analyze_blood_pressure(self, readings):
        if not readings:
            return {"risk": "unknown"}

        hypertension_count = 0
        hypotension_count = 0
        for reading in readings:
            systolic, diastolic = reading["systolic"], reading["diastolic"]
            if systolic >= 140 or diastolic >= 90:
                hypertension_count += 1
            elif systolic < 90 or diastolic < 60:
                hypotension_count += 1

        hypertension_percentage = hypertension_count / len(readings)
        hypotension_percentage = hypotension_count / len(readings)

        risk = "low"
        conditions = []

        if hypertension_percentage > 0.3:
            risk = _higher(risk, "high" if hypertension_percentage > 0.7 else "moderate")
            conditions.append("Hypertension")

        if hypotension_percentage > 0.3:
            risk = _higher(risk, "moderate")
            conditions.append("Hypotension")

        return {
            "risk": risk,
            "conditions": conditions,
            "metrics": {
                "hypertension_percentage": hypertension_percentage,
                "hypotension_percentage": hypotension_percentage,
                "average_systolic": sum(r["systolic"] for r in readings) / len(readings),
                "average_diastolic": sum(r["diastolic"] for r in readings) / len(readings),
            },
        }

    def analyze_oxygen_saturation(self, readings):
        if not readings:
            return {"risk": "unknown"}

        values = np.array([r["value"] for r in readings], dtype=float)
        low_oxygen_percentage = float(np.mean(values < 95))
        critical_oxygen_percentage = float(np.mean(values < 90))

        risk = "low"
        conditions = []

        if low_oxygen_percentage > 0.2:
            risk = _higher(risk, "moderate")
            conditions.append("Hypoxemia")

        if critical_oxygen_percentage > 0.1:
            risk = _higher(risk, "high")
            conditions.append("Severe Hypoxemia")
            conditions.append("Possible Respiratory Distress")

        return {
            "risk": risk,
            "conditions": conditions,
            "metrics": {
                "average_o2": float(values.mean()),
                "low_oxygen_percentage": low_oxygen_percentage,
                "critical_oxygen_percentage": critical_oxygen_percentage,
            },
        }

    def analyze_ecg(self, readings):
        """
        Rhythm check over recorded ECG segments.
        Segments without samples are ignored.
        """
        if not readings:
            return {"risk": "unknown"}

        irregularities = []
        for segment in readings:
            values = segment.get("values") or []
            if values:
                fs = segment.get("sampling_rate", config.ECG_SAMPLING_RATE)
                irregularities.append(rhythm_irregularity(values, fs))

        max_irregularity = max(irregularities) if irregularities else 0.0

        risk = "low"
        conditions = []
        if max_irregularity > 0.2:
            risk = "high" if max_irregularity > 0.3 else "moderate"
            conditions.append("Arrhythmia")

        return {
            "risk": risk,
            "conditions": conditions,
            "metrics": {
                "analyzed_segments": len(irregularities),
                "max_irregularity": max_irregularity,
            },
        }

    def assess_cardiovascular_risk(self, health_data):
        """
        Run every series analysis and fuse the results

        Args:
            health_data: dict with optional heart_rate, blood_pressure,
                spo2 and ecg reading lists

        Returns:
            dict: overall_risk, possible_diseases, detailed_analysis
        """
        hr_analysis = self.analyze_heart_rate(health_data.get("heart_rate") or [])
        bp_analysis = self.analyze_blood_pressure(health_data.get("blood_pressure") or [])
        o2_analysis = self.analyze_oxygen_saturation(health_data.get("spo2") or [])
        ecg_analysis = self.analyze_ecg(health_data.get("ecg") or [])
        analyses = [hr_analysis, bp_analysis, o2_analysis, ecg_analysis]

        known = [RISK_SCORES[a["risk"]] for a in analyses if a["risk"] != "unknown"]

        overall_risk = "unknown"
        if known:
            avg_risk = sum(known) / len(known)
            if avg_risk < 1.5:
                overall_risk = "low"
            elif avg_risk < 2.5:
                overall_risk = "moderate"
            else:
                overall_risk = "high"

        all_conditions = []
        for analysis in analyses:
            all_conditions.extend(analysis.get("conditions", []))

        logger.debug("Cardiovascular assessment: %s (%d conditions)", overall_risk, len(all_conditions))

        return {
            "overall_risk": overall_risk,
            "possible_diseases": self.map_conditions_to_diseases(all_conditions),
            "detailed_analysis": {
                "heart_rate": hr_analysis,
                "blood_pressure": bp_analysis,
                "oxygen_saturation": o2_analysis,
                "ecg": ecg_analysis,
            },
        }

    def map_conditions_to_diseases(self, conditions):
        diseases = {}
        for condition in conditions:
            for disease in DISEASE_MAP.get(condition, []):
                diseases.setdefault(disease, None)
        return list(diseases)
