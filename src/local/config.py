import json
import logging
from pathlib import Path
from typing import Any, Dict

import src.settings as default_settings

log = logging.getLogger(__name__)


class MergedSettings:
    """
    Attribute access to the wrapper's settings.

    Values come from `settings.py` (which has already applied `.env` through
    python-dotenv), then from `overrides.json` for the keys listed in
    `MODIFIABLE_SETTINGS`. Override values are coerced to the type of the
    default they replace, so a timeout stays a number.
    """

    def __init__(self, overrides_path: Path = default_settings.OVERRIDES_JSON_PATH) -> None:
        self.OVERRIDES_JSON_PATH: Path = Path(overrides_path)
        self._overrides: Dict[str, Any] = {}

        for key in dir(default_settings):
            if key.isupper() and key != "OVERRIDES_JSON_PATH":
                setattr(self, key, getattr(default_settings, key))
        self._load_overrides()

    @staticmethod
    def _coerce(default: Any, value: Any) -> Any:
        """Converts an override to the type of its default value."""
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(default, (int, float)) and not isinstance(value, (int, float)):
            return type(default)(value)
        if isinstance(default, Path):
            return Path(value)
        return value

    def _apply(self, key: str, value: Any) -> bool:
        if not hasattr(self, key):
            log.warning(f"Unknown setting '{key}'. Ignoring.")
            return False
        if key not in self.MODIFIABLE_SETTINGS:
            log.warning(f"Setting '{key}' cannot be overridden. Ignoring.")
            return False
        try:
            coerced = self._coerce(getattr(default_settings, key), value)
        except (TypeError, ValueError):
            log.warning(f"Invalid value '{value}' for setting '{key}'. Ignoring.")
            return False

        setattr(self, key, coerced)
        self._overrides[key] = coerced
        log.debug(f"Overridden setting: {key} = {coerced}")
        return True

    def _load_overrides(self) -> None:
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            overrides = json.loads(self.OVERRIDES_JSON_PATH.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return
        if not isinstance(overrides, dict):
            log.error(f"Overrides file '{self.OVERRIDES_JSON_PATH}' must hold a JSON object. Ignoring it.")
            return

        log.info(f"Loading configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            self._apply(key, value)

    def set_override(self, key: str, value: Any) -> bool:
        """
        Changes a modifiable setting for this run and persists it to `overrides.json`.

        :return: True if the setting was accepted.
        """
        if not self._apply(key, value):
            return False
        self.save_overrides()
        return True

    def save_overrides(self) -> None:
        """Writes every override applied so far to the overrides file."""
        serializable = {key: str(value) if isinstance(value, Path) else value
                        for key, value in self._overrides.items()}
        try:
            self.OVERRIDES_JSON_PATH.parent.mkdir(parents=True, exist_ok=True)
            self.OVERRIDES_JSON_PATH.write_text(json.dumps(serializable, indent=4), encoding="utf-8")
            log.info(f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}")
        except IOError as e:
            log.error(f"Failed to write overrides file '{self.OVERRIDES_JSON_PATH}': {e}")

# Singleton shared by every module
effective_settings = MergedSettings()
