import logging
from typing import Dict

STDOUT = "stdout"
STDERR = "stderr"
INTERNAL = "internal"

_LEVELS: Dict[str, int] = {
    STDOUT: logging.INFO,
    STDERR: logging.WARNING,
    INTERNAL: logging.INFO,
}


class ProcessLogSink:
    """
    Accepts tagged lines from the supervised server and hands them to logging.

    Each tag gets its own 'proc.<tag>' logger, which the console formatter
    prints verbatim and the SQLite handler persists.
    """

    def __init__(self, prefix: str = "proc") -> None:
        self.prefix = prefix
        self._loggers: Dict[str, logging.Logger] = {}

    def write(self, tag: str, line: str) -> None:
        logger = self._loggers.get(tag)
        if logger is None:
            logger = logging.getLogger(f"{self.prefix}.{tag}")
            self._loggers[tag] = logger
        logger.log(_LEVELS.get(tag, logging.INFO), line)
