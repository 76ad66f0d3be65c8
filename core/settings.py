"""
User settings for zsynth.

Settings live in ~/.zsynth/settings.json. Missing sections or keys are filled
from DEFAULT_SETTINGS, and the file is created with defaults on first run.
"""
import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "audio": {
        "sample_rate": 44100,
        "buffer_size": 512,
        "master_volume": 1.0,
        "device": None,
    },
    "scheduler": {
        "lookahead": 0.1,   # seconds of audio scheduled ahead of the clock
        "interval": 0.025,  # seconds between scheduler ticks
        "start_lead": 0.05,  # delay before the first step of a new track
    },
    "playback": {
        "crossfade": 0.5,
        "stop_time_constant": 0.05,
    },
}


def default_settings_path() -> Path:
    """Get path to the user's settings file."""
    return Path.home() / ".zsynth" / "settings.json"


def load_settings(config_path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load settings from the config file, merged over the defaults.

    Args:
        config_path: Settings file (defaults to ~/.zsynth/settings.json)

    Returns:
        Settings dictionary with every default section and key present
    """
    config_path = Path(config_path) if config_path else default_settings_path()
    defaults = copy.deepcopy(DEFAULT_SETTINGS)

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"[SETTINGS] Failed to load settings: {e}")
            return defaults

        if not isinstance(loaded, dict):
            print(f"[SETTINGS] Ignoring malformed settings file {config_path}")
            return defaults

        settings_modified = False
        for section, values in defaults.items():
            user_values = loaded.get(section)
            if not isinstance(user_values, dict):
                settings_modified = True
                continue
            for key in values:
                if key in user_values:
                    values[key] = user_values[key]
                else:
                    settings_modified = True

        if settings_modified:
            try:
                save_settings(defaults, config_path)
                print("[SETTINGS] Added missing settings to file")
            except IOError as e:
                print(f"[SETTINGS] Failed to save migrated settings: {e}")

        return defaults

    try:
        save_settings(defaults, config_path)
        print("[SETTINGS] Created new settings file with defaults")
    except IOError as e:
        print(f"[SETTINGS] Failed to save default settings: {e}")

    return defaults


def save_settings(settings: Dict[str, Dict[str, Any]], config_path: Optional[Path] = None):
    """
    Save settings to the config file.

    Raises:
        IOError: If the file cannot be written
    """
    config_path = Path(config_path) if config_path else default_settings_path()
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
    except OSError as e:
        raise IOError(f"Failed to save settings to {config_path}: {e}") from e
