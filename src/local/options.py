import json
import logging
from pathlib import Path
from typing import Dict, Optional

from src.local.config import effective_settings as config

log = logging.getLogger(__name__)


class Options:
    """
    Wrapper options with string values, persisted as a JSON document.

    Values missing from the file fall back to `DEFAULT_OPTIONS`. This is the
    configuration provider the supervisor reads the memory limits, extra JVM
    arguments and alternate jar path from.
    """

    def __init__(self, path: Optional[Path] = None, defaults: Optional[Dict[str, str]] = None) -> None:
        self.path = Path(path) if path else config.OPTIONS_PATH
        self.defaults: Dict[str, str] = dict(config.DEFAULT_OPTIONS if defaults is None else defaults)
        self._values: Dict[str, str] = {}

    def load(self) -> "Options":
        """
        Reads the options file if it exists. A malformed file is logged and ignored.

        :return: The Options instance, for chaining.
        """
        self._values = {}
        if not self.path.exists():
            log.debug(f"No options file at '{self.path}'. Using defaults.")
            return self

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load options file '{self.path}': {e}. Using defaults.")
            return self

        if not isinstance(data, dict):
            log.error(f"Options file '{self.path}' is malformed. Using defaults.")
            return self

        self._values = {str(key): "" if value is None else str(value) for key, value in data.items()}
        log.info(f"Loaded {len(self._values)} options from '{self.path}'.")
        return self

    def save(self) -> None:
        """Writes defaults merged with the current values atomically."""
        merged = {**self.defaults, **self._values}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        try:
            temp_path.write_text(json.dumps(merged, indent=4, sort_keys=True), encoding="utf-8")
            temp_path.replace(self.path)
        except (IOError, OSError) as e:
            log.error(f"Failed to write options file '{self.path}': {e}", exc_info=True)
        finally:
            temp_path.unlink(missing_ok=True)

    def get(self, key: str) -> str:
        if key in self._values:
            return self._values[key]
        return self.defaults.get(key, "")

    def get_int(self, key: str) -> int:
        """
        Returns an option as an integer.

        :raises ValueError: If the stored value is not an integer.
        """
        value = self.get(key)
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Option '{key}' must be an integer, got '{value}'.") from None

    def contains(self, key: str) -> bool:
        """True if the option is set to a non-empty value."""
        return bool(self.get(key).strip())

    def set(self, key: str, value) -> None:
        self._values[key] = "" if value is None else str(value)


class ServerOptions:
    """
    Writes the server's own `server.properties` from the wrapper options.

    Keys the wrapper does not manage are preserved as they are found.
    """

    def __init__(self, options: Options, path: Optional[Path] = None) -> None:
        self.options = options
        self.path = Path(path) if path else config.SERVER_PROPERTIES_PATH

    def _read_existing(self) -> Dict[str, str]:
        properties: Dict[str, str] = {}
        if not self.path.exists():
            return properties
        try:
            for line in self.path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                properties[key.strip()] = value.strip()
        except IOError as e:
            log.warning(f"Could not read '{self.path}': {e}")
        return properties

    def save(self) -> None:
        """Merges the managed keys into `server.properties` and writes it."""
        properties = self._read_existing()
        for option_key, property_key in config.SERVER_PROPERTY_KEYS.items():
            properties[property_key] = self.options.get(option_key)

        lines = ["#Minecraft server properties", "#Generated by ServerWrap"]
        lines.extend(f"{key}={value}" for key, value in sorted(properties.items()))
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("\n".join(lines) + "\n", encoding="utf-8")
            log.debug(f"Server properties written to '{self.path}'.")
        except IOError as e:
            log.error(f"Failed to write server properties '{self.path}': {e}")
