import os
import sys
import json
import logging

logger = logging.getLogger("Tikr.Preferences")


def _get_prefs_dir():
    """Get the writable data directory for preferences."""
    if getattr(sys, 'frozen', False) and sys.platform == 'darwin':
        return os.path.join(os.path.expanduser("~"), "Library", "Application Support", "tikr")
    else:
        return os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data")

# Path to the preferences file
PREFS_FILE = os.path.join(_get_prefs_dir(), "user_preferences.json")

def load_preferences(path=None):
    """Load user preferences from JSON."""
    path = path or PREFS_FILE
    if not os.path.exists(path):
        return {}

    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Error loading preferences: {e}")
        return {}

def save_preferences(prefs, path=None):
    """Merge a dict into the saved preferences."""
    path = path or PREFS_FILE
    try:
        data_dir = os.path.dirname(path)
        if not os.path.exists(data_dir):
            os.makedirs(data_dir, exist_ok=True)

        # Merge with existing
        current = load_preferences(path)
        current.update(prefs)

        with open(path, 'w') as f:
            json.dump(current, f, indent=2)

    except OSError as e:
        logger.warning(f"Error saving preferences: {e}")

def get_volume_preference(default=1.0, path=None):
    """Get the last used volume (0.0 - 1.0)."""
    value = load_preferences(path).get("volume", default)
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default

def set_volume_preference(volume, path=None):
    """Save the volume so the next session starts at the same level."""
    save_preferences({"volume": round(float(volume), 3)}, path)
