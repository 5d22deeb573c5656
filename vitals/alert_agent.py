"""
Alert Agent - Attention-required analysis log
Keeps analyses that need attention, with a per-issue cooldown so a
persistent condition is logged once instead of on every reading
"""

import threading
from collections import deque
from datetime import datetime, timedelta

from . import config
from .readings_agent import load_json_state, save_json_state


class AlertAgent:
    def __init__(self, patient_id, state_file=config.ALERTS_FILE,
                 cooldown_minutes=config.ALERT_COOLDOWN_MINUTES,
                 history_size=config.ALERT_HISTORY_SIZE):
        self.patient_id = patient_id
        self.state_file = state_file
        self.ALERT_COOLDOWN_MINUTES = cooldown_minutes
        self.history_size = history_size
        self._lock = threading.RLock()
        self.state = self._load_state()

    def _load_state(self):
        """Load or initialize alert state"""
        state = load_json_state(self.state_file)
        if state is not None:
            state["alert_history"] = deque(state["alert_history"], maxlen=self.history_size)
            return state

        return {
            "patient_id": self.patient_id,
            "created_date": datetime.now().isoformat(),
            "alert_history": deque(maxlen=self.history_size),
            "last_alert_times": {},   # issue key -> ISO time
            "next_alert_id": 1,
            "total_alerts": 0,
            "suppressed": 0,
        }

    def _save_state(self):
        state_copy = self.state.copy()
        state_copy["alert_history"] = list(state_copy["alert_history"])
        save_json_state(self.state_file, state_copy)

    @staticmethod
    def _issue_key(source, analysis):
        types = sorted(issue.get("type", "unknown") for issue in analysis.get("issues", []))
        return f"{source}:{','.join(types)}"

    def _is_in_cooldown(self, key, now):
        last = self.state["last_alert_times"].get(key)
        if not last:
            return False
        return now - datetime.fromisoformat(last) < timedelta(minutes=self.ALERT_COOLDOWN_MINUTES)

    def record(self, source, analysis, reading_id=None, now=None):
        """
        Log an analysis if it requires attention

        Args:
            source: what produced the analysis (ecg, pulse_ox, blood_pressure, ...)
            analysis: result dict from AnalyzerAgent
            reading_id: stored reading the analysis belongs to
            now: override for the current time

        Returns:
            dict | None: the new alert, or None when nothing was logged
        """
        if not analysis.get("requires_attention"):
            return None

        now = now or datetime.now()
        key = self._issue_key(source, analysis)
        with self._lock:
            if self._is_in_cooldown(key, now):
                self.state["suppressed"] += 1
                self._save_state()
                return None
            return self._log_alert(source, analysis, key, reading_id, now)

    def _log_alert(self, source, analysis, key, reading_id, now):
        alert = {
            "alert_id": self.state["next_alert_id"],
            "timestamp": now.isoformat(),
            "source": source,
            "reading_id": reading_id,
            "risk_level": analysis.get("risk_level"),
            "issues": analysis.get("issues", []),
            "acknowledged": False,
        }

        self.state["alert_history"].append(alert)
        self.state["last_alert_times"][key] = now.isoformat()
        self.state["next_alert_id"] += 1
        self.state["total_alerts"] += 1
        self._save_state()
        return alert

    def get_alert_history(self, limit=10):
        with self._lock:
            return [dict(a) for a in list(self.state["alert_history"])[-limit:]]

    def acknowledge_alert(self, alert_id):
        """Mark an alert as acknowledged"""
        with self._lock:
            for alert in self.state["alert_history"]:
                if alert.get("alert_id") == alert_id:
                    alert["acknowledged"] = True
                    alert["acknowledged_at"] = datetime.now().isoformat()
                    self._save_state()
                    return True
        return False

    def get_current_status(self):
        with self._lock:
            history = list(self.state["alert_history"])
            total, suppressed = self.state["total_alerts"], self.state["suppressed"]
        return {
            "total_alerts": total,
            "suppressed": suppressed,
            "unacknowledged": sum(1 for a in history if not a["acknowledged"]),
            "alert_history_count": len(history),
            "cooldown_minutes": self.ALERT_COOLDOWN_MINUTES,
        }
