"""
Profile Agent - Patient demographics and history used by risk scoring
"""

from datetime import datetime

from . import config
from .readings_agent import load_json_state, save_json_state


class ProfileAgent:
    PROFILE_FIELDS = ["age", "smoker", "diabetic", "family_history"]

    def __init__(self, patient_id, state_file=config.PROFILE_FILE):
        self.patient_id = patient_id
        self.state_file = state_file
        self.state = self._load_state()

    def _load_state(self):
        """Load or initialize patient profile"""
        state = load_json_state(self.state_file)
        if state is not None:
            return state

        return {
            "patient_id": self.patient_id,
            "created_date": datetime.now().isoformat(),
            "last_update": None,
            "age": None,
            "smoker": False,
            "diabetic": False,
            "family_history": False,
        }

    def _save_state(self):
        save_json_state(self.state_file, self.state)

    def update_profile(self, profile_data):
        """
        Update known profile fields; anything else is ignored

        Raises:
            ValueError: age is not a non-negative integer
        """
        updates = {}
        for key, value in profile_data.items():
            if key not in self.PROFILE_FIELDS:
                continue
            if key == "age":
                if value is not None:
                    try:
                        value = int(value)
                    except (TypeError, ValueError):
                        raise ValueError(f"age must be an integer, got {value!r}") from None
                    if value < 0:
                        raise ValueError("age must be non-negative")
            else:
                value = bool(value)
            updates[key] = value

        # nothing is applied unless every field validated
        self.state.update(updates)
        self.state["last_update"] = datetime.now().isoformat()
        self._save_state()
        return self.get_profile()

    def get_profile(self):
        return {
            "patient_id": self.state["patient_id"],
            "last_update": self.state["last_update"],
            **self.risk_input(),
        }

    def risk_input(self):
        """Profile in the shape analyze_cardiovascular_risk expects"""
        return {field: self.state.get(field) for field in self.PROFILE_FIELDS}
