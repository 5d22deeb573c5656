"""
Analyzer Agent - Single-Reading Health Analysis
Threshold checks on individual vitals and a combined cardiovascular score
"""

import logging

from . import config
from .ecg_signal import rhythm_irregularity, variability

logger = logging.getLogger(__name__)

RISK_ORDER = ["normal", "low", "moderate", "high", "critical"]


def raise_risk(results, level):
    """Move results["risk_level"] up to `level`; never lowers it"""
    if RISK_ORDER.index(level) > RISK_ORDER.index(results["risk_level"]):
        results["risk_level"] = level


def _new_results():
    return {"issues": [], "risk_level": "normal", "requires_attention": False}


class AnalyzerAgent:
    # Resting heart rate bands (bpm)
    RESTING_HR_HIGH = 100
    RESTING_HR_LOW = 50
    EXTREME_HR_HIGH = 150
    EXTREME_HR_LOW = 40

    # Rhythm irregularity (coefficient of variation of R-R intervals)
    IRREGULARITY_MODERATE = 0.2
    IRREGULARITY_HIGH = 0.3
    MIN_RHYTHM_SAMPLES = 100

    def analyze_ecg(self, ecg_data):
        """
        Analyze one decoded ECG reading for rate and rhythm problems

        Args:
            ecg_data: dict with "hr", "values" and "sampling_rate"

        Returns:
            dict: issues, risk_level, requires_attention
        """
        try:
            results = _new_results()

            heart_rate = self._extract_heart_rate(ecg_data)
            if heart_rate is not None:
                if heart_rate < self.RESTING_HR_LOW:
                    results["issues"].append({
                        "type": "bradycardia",
                        "description": "Unusually slow heart rate detected",
                        "value": heart_rate,
                        "threshold": self.RESTING_HR_LOW,
                        "severity": "moderate",
                    })
                    raise_risk(results, "moderate")
                    results["requires_attention"] = True
                elif heart_rate > self.RESTING_HR_HIGH:
                    results["issues"].append({
                        "type": "tachycardia",
                        "description": "Unusually fast heart rate detected",
                        "value": heart_rate,
                        "threshold": self.RESTING_HR_HIGH,
                        "severity": "moderate",
                    })
                    raise_risk(results, "moderate")
                    results["requires_attention"] = True

            rhythm_issue = self._analyze_heart_rhythm(ecg_data)
            if rhythm_issue:
                results["issues"].append(rhythm_issue)
                if rhythm_issue["severity"] == "high":
                    raise_risk(results, "high")
                    results["requires_attention"] = True

            return results
        except (TypeError, ValueError) as e:
            logger.error("Error analyzing ECG data: %s", e)
            return {"error": "Failed to analyze ECG data", "issues": []}

    def analyze_blood_pressure(self, systolic, diastolic):
        """Classify a blood pressure reading (ACC/AHA bands) and check for hypotension"""
        results = _new_results()
        value = f"{systolic}/{diastolic}"

        if systolic >= 180 or diastolic >= 120:
            results["issues"].append({
                "type": "hypertensive_crisis",
                "description": "Hypertensive crisis - Seek emergency care",
                "value": value,
                "severity": "critical",
            })
            raise_risk(results, "critical")
            results["requires_attention"] = True
        elif systolic >= 140 or diastolic >= 90:
            results["issues"].append({
                "type": "hypertension_stage2",
                "description": "Stage 2 Hypertension",
                "value": value,
                "severity": "high",
            })
            raise_risk(results, "high")
            results["requires_attention"] = True
        elif 130 <= systolic < 140 or 80 <= diastolic < 90:
            results["issues"].append({
                "type": "hypertension_stage1",
                "description": "Stage 1 Hypertension",
                "value": value,
                "severity": "moderate",
            })
            raise_risk(results, "moderate")
        elif 120 <= systolic < 130 and diastolic < 80:
            results["issues"].append({
                "type": "elevated",
                "description": "Elevated blood pressure",
                "value": value,
                "severity": "low",
            })
            raise_risk(results, "low")

        if systolic < 90 or diastolic < 60:
            results["issues"].append({
                "type": "hypotension",
                "description": "Low blood pressure",
                "value": value,
                "severity": "moderate",
            })
            raise_risk(results, "moderate")
            results["requires_attention"] = True

        return results

    def analyze_oxygen_saturation(self, spo2):
        results = _new_results()

        if spo2 < 90:
            results["issues"].append({
                "type": "severe_hypoxemia",
                "description": "Severe low blood oxygen levels",
                "value": spo2,
                "threshold": 90,
                "severity": "critical",
            })
            raise_risk(results, "critical")
            results["requires_attention"] = True
        elif spo2 < 95:
            results["issues"].append({
                "type": "mild_hypoxemia",
                "description": "Mild low blood oxygen levels",
                "value": spo2,
                "threshold": 95,
                "severity": "moderate",
            })
            raise_risk(results, "moderate")
            results["requires_attention"] = True

        return results

    def analyze_heart_rate(self, heart_rate, age=None):
        """
        Check a resting heart rate; with an age, also compare against the
        age-predicted maximum (220 - age)
        """
        results = _new_results()

        if heart_rate > self.RESTING_HR_HIGH:
            severity = "high" if heart_rate > self.EXTREME_HR_HIGH else "moderate"
            results["issues"].append({
                "type": "tachycardia",
                "description": "Unusually fast heart rate detected",
                "value": heart_rate,
                "threshold": self.RESTING_HR_HIGH,
                "severity": severity,
            })
            raise_risk(results, severity)
            results["requires_attention"] = True
        elif heart_rate < self.RESTING_HR_LOW:
            severity = "high" if heart_rate < self.EXTREME_HR_LOW else "moderate"
            results["issues"].append({
                "type": "bradycardia",
                "description": "Unusually slow heart rate detected",
                "value": heart_rate,
                "threshold": self.RESTING_HR_LOW,
                "severity": severity,
            })
            raise_risk(results, severity)
            results["requires_attention"] = True

        if age is not None:
            max_heart_rate = 220 - age
            results["max_heart_rate"] = max_heart_rate
            if heart_rate > max_heart_rate:
                results["issues"].append({
                    "type": "exceeds_age_max",
                    "description": "Heart rate above the age-predicted maximum",
                    "value": heart_rate,
                    "threshold": max_heart_rate,
                    "severity": "high",
                })
                raise_risk(results, "high")
                results["requires_attention"] = True

        return results

    def analyze_cardiovascular_risk(self, user_data, readings):
        """
        Combine a history of readings with the patient profile

        Args:
            user_data: dict with age, smoker, diabetic, family_history (or None)
            readings: list of {"type": ..., "data": {...}} records

        Returns:
            dict: risk_level, risk_score, risk_factors, recommend_consultation
        """
        try:
            risk_factors = []
            risk_score = 0

            # Blood pressure trend
            bp_readings = [r["data"] for r in readings if r.get("type") == "blood_pressure"]
            if bp_readings:
                high_bp = sum(1 for d in bp_readings if d["systolic"] >= 140 or d["diastolic"] >= 90)
                bp_risk_percent = high_bp / len(bp_readings) * 100

                if bp_risk_percent > 50:
                    risk_factors.append({
                        "factor": "hypertension",
                        "description": "High blood pressure detected in over 50% of readings",
                        "severity": "high",
                    })
                    risk_score += 3
                elif bp_risk_percent > 25:
                    risk_factors.append({
                        "factor": "hypertension",
                        "description": "High blood pressure detected occasionally",
                        "severity": "moderate",
                    })
                    risk_score += 1

            # Heart rate variability across readings
            hr_values = []
            for r in readings:
                if r.get("type") in ("heart_rate", "ecg"):
                    data = r.get("data", {})
                    hr = data.get("heart_rate", data.get("hr"))
                    if hr is not None:
                        hr_values.append(hr)
            if len(hr_values) > 3 and variability(hr_values) < 10:
                risk_factors.append({
                    "factor": "low_hrv",
                    "description": "Low heart rate variability indicates potential autonomic dysfunction",
                    "severity": "moderate",
                })
                risk_score += 2

            # Oxygen saturation trend
            spo2_readings = [r["data"] for r in readings if r.get("type") == "pulse_ox"]
            low_spo2 = sum(1 for d in spo2_readings if d.get("spo2") is not None and d["spo2"] < 95)
            if low_spo2 > 0:
                risk_factors.append({
                    "factor": "hypoxemia",
                    "description": "Low blood oxygen levels detected",
                    "severity": "high" if low_spo2 > 2 else "moderate",
                })
                risk_score += 3 if low_spo2 > 2 else 1

            # Demographics and history
            if user_data:
                if (user_data.get("age") or 0) > 65:
                    risk_score += 1

                if user_data.get("smoker"):
                    risk_factors.append({
                        "factor": "smoking",
                        "description": "Smoking increases cardiovascular risk",
                        "severity": "high",
                    })
                    risk_score += 2

                if user_data.get("diabetic"):
                    risk_factors.append({
                        "factor": "diabetes",
                        "description": "Diabetes increases cardiovascular risk",
                        "severity": "high",
                    })
                    risk_score += 2

                if user_data.get("family_history"):
                    risk_factors.append({
                        "factor": "genetic",
                        "description": "Family history of cardiovascular disease",
                        "severity": "moderate",
                    })
                    risk_score += 1

            if risk_score >= 5:
                risk_level = "high"
            elif risk_score >= 2:
                risk_level = "moderate"
            else:
                risk_level = "low"

            return {
                "risk_level": risk_level,
                "risk_score": risk_score,
                "risk_factors": risk_factors,
                "recommend_consultation": risk_score >= 4,
            }
        except (KeyError, TypeError) as e:
            logger.error("Error analyzing cardiovascular risk: %s", e)
            return {"error": "Failed to analyze cardiovascular risk"}

    def _extract_heart_rate(self, ecg_data):
        return ecg_data.get("hr")

    def _analyze_heart_rhythm(self, ecg_data):
        values = ecg_data.get("values") or []
        if len(values) <= self.MIN_RHYTHM_SAMPLES:
            return None

        fs = ecg_data.get("sampling_rate", config.ECG_SAMPLING_RATE)
        irregularity = rhythm_irregularity(values, fs)
        if irregularity > self.IRREGULARITY_MODERATE:
            return {
                "type": "arrhythmia",
                "description": "Irregular heart rhythm detected",
                "value": round(irregularity, 3),
                "severity": "high" if irregularity > self.IRREGULARITY_HIGH else "moderate",
            }
        return None
