"""
Readings Agent - Local store for decoded and manually logged vitals
"""

import json
import logging
import os
import threading
import uuid
from datetime import datetime

from . import config

logger = logging.getLogger(__name__)


def load_json_state(path):
    """
    Read a JSON state file. Missing, empty or corrupted files yield None;
    corrupted ones are removed so the caller starts fresh.
    """
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            s = f.read().strip()
        if not s:
            raise ValueError("Empty JSON file")
        return json.loads(s)
    except ValueError as e:
        logger.warning("Discarding unreadable state file %s: %s", path, e)
        os.remove(path)
        return None


def save_json_state(path, state):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2)


def parse_timestamp(value):
    """
    Parse an ISO-8601 timestamp into a naive local datetime.
    Offset-aware values are converted to local time so every stored
    timestamp compares against every other.

    Raises:
        ValueError: value is not an ISO-8601 string
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}") from None
    else:
        raise ValueError(f"Timestamp must be an ISO-8601 string, got {type(value).__name__}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _parse_time(value):
    if value is None:
        return None
    return parse_timestamp(value)


class ReadingsAgent:
    def __init__(self, state_file=config.READINGS_FILE, max_per_type=config.MAX_READINGS_PER_TYPE):
        self.state_file = state_file
        self.max_per_type = max_per_type
        # device monitor threads and request handlers share one store
        self._lock = threading.RLock()
        self.state = self._load_state()

    def _load_state(self):
        state = load_json_state(self.state_file)
        if state is not None:
            return state

        return {
            "created_date": datetime.now().isoformat(),
            "last_updated": None,
            "readings": {},
        }

    def _save_state(self):
        save_json_state(self.state_file, self.state)

    def store_reading(self, reading_type, data):
        """
        Store a reading and return its id

        Args:
            reading_type: e.g. ecg, pulse_ox, heart_rate, blood_pressure
            data: reading payload; its "timestamp" is kept when present

        Raises:
            ValueError: the payload carries a timestamp that is not ISO-8601
        """
        if data.get("timestamp") is not None:
            data = {**data, "timestamp": parse_timestamp(data["timestamp"]).isoformat()}
            timestamp = data["timestamp"]
        else:
            timestamp = datetime.now().isoformat()

        reading_id = str(uuid.uuid4())
        record = {
            "id": reading_id,
            "type": reading_type,
            "timestamp": timestamp,
            "data": data,
            "synced": False,
        }

        with self._lock:
            history = self.state["readings"].setdefault(reading_type, [])
            history.append(record)
            if len(history) > self.max_per_type:
                del history[:-self.max_per_type]

            self.state["last_updated"] = datetime.now().isoformat()
            self._save_state()
        return reading_id

    def get_reading(self, reading_type, reading_id):
        with self._lock:
            for record in self.state["readings"].get(reading_type, []):
                if record["id"] == reading_id:
                    return record
        return None

    def get_readings(self, reading_type, start=None, end=None):
        """Readings of one type inside [start, end], oldest first"""
        start, end = _parse_time(start), _parse_time(end)
        with self._lock:
            records = list(self.state["readings"].get(reading_type, []))

        selected = []
        for record in records:
            timestamp = parse_timestamp(record["timestamp"])
            if (start is None or timestamp >= start) and (end is None or timestamp <= end):
                selected.append((timestamp, record))

        selected.sort(key=lambda pair: pair[0])
        return [record for _, record in selected]

    def get_latest_reading(self, reading_type):
        readings = self.get_readings(reading_type)
        return readings[-1] if readings else None

    def get_types(self):
        with self._lock:
            return sorted(self.state["readings"])

    def mark_synced(self, reading_type=None):
        """Flag unsynced readings as uploaded; returns how many changed"""
        with self._lock:
            types = [reading_type] if reading_type else list(self.state["readings"])
            count = 0
            for t in types:
                for record in self.state["readings"].get(t, []):
                    if not record["synced"]:
                        record["synced"] = True
                        count += 1
            if count:
                self._save_state()
        logger.info("Marked %d readings as synced", count)
        return count

    def clear_all_data(self):
        with self._lock:
            self.state["readings"] = {}
            self.state["last_updated"] = datetime.now().isoformat()
            self._save_state()
