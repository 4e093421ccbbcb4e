import logging
import sys

from src.local.config import effective_settings as config
from src.log.handler import SQLiteHandler


class MainFormatter(logging.Formatter):
    """A custom formatter to handle regular logs and raw server output."""

    def format(self, record):
        # Lines relayed from the server already carry their own timestamp and level.
        if record.name.startswith('proc.'):
            return record.getMessage()

        original_format = self._style._fmt
        self._style._fmt = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'
        formatted_message = super().format(record)
        self._style._fmt = original_format
        return formatted_message

def setup_logging(console_level: int = logging.INFO, persist: bool = True) -> None:
    """
    Configures the root logger for the application.
    This sets up handlers for console and SQLite output, clearing any
    previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    :param persist: If False, the SQLite handler is not installed.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    if not persist:
        return

    # --- SQLite Handler (all levels, server output included) ---
    try:
        config.LOG_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        sqlite_handler = SQLiteHandler(db_path=config.LOG_DB_PATH)
        sqlite_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(sqlite_handler)
    except Exception as e:
        root_logger.error(f"Failed to initialize SQLite logging handler: {e}. Logging to DB will be disabled.")
