import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.local.config import effective_settings as config
from src.local.database import LogDBManager


class SQLiteHandler(logging.Handler):
    """
    A custom logging handler that writes logs to a SQLite database
    in batches using a background thread.
    """
    def __init__(self, db_path: Path, flush_interval: Optional[float] = None, buffer_size: Optional[int] = None):
        """
        Initializes the SQLite handler.

        :param db_path: The path to the SQLite database file.
        :param flush_interval: Seconds between background flushes.
        :param buffer_size: Number of buffered records that triggers an immediate flush.
        """
        super().__init__()
        self.db_path = db_path
        self.flush_interval = flush_interval or config.LOG_BUFFER_FLUSH_INTERVAL
        self.buffer_size = buffer_size or config.LOG_BUFFER_SIZE
        self.log_buffer: List[Dict[str, Any]] = []
        self.buffer_lock = threading.Lock()
        self.stop_event = threading.Event()
        self.log_db = LogDBManager(self.db_path)
        self.log_db.initialize_database()
        self.flush_thread = threading.Thread(target=self._periodic_flush, daemon=True, name="SQLiteFlushThread")
        self.flush_thread.start()

    def _periodic_flush(self) -> None:
        """Periodically flushes the log buffer. This runs in a background thread."""
        while not self.stop_event.wait(self.flush_interval):
            self.flush()

    def emit(self, record: logging.LogRecord) -> None:
        """
        Adds a log record to the internal buffer for batch writing.

        Server output arrives on 'proc.<stream>' loggers; the stream name is
        stored in place of the module.

        :param record: The log record to be processed.
        """
        if record.name.startswith('proc.'):
            module = 'server'
            func_name = record.name.split('.')[-1]
            lineno = 0
        else:
            module = record.module
            func_name = record.funcName
            lineno = record.lineno

        log_entry = {
            "timestamp": record.created,
            "level": record.levelname,
            "module": module,
            "funcName": func_name,
            "lineno": lineno,
            "message": record.getMessage()
        }
        with self.buffer_lock:
            self.log_buffer.append(log_entry)
            should_flush = len(self.log_buffer) >= self.buffer_size
        if should_flush:
            self.flush()

    def flush(self) -> None:
        """Writes the buffered records to the database."""
        with self.buffer_lock:
            if not self.log_buffer:
                return
            entries_to_write = list(self.log_buffer)
            self.log_buffer.clear()

        try:
            self.log_db.insert_log_batch(entries_to_write)
        except sqlite3.Error as e:
            print(f"Error writing logs to DB: {e}. Log entries: {len(entries_to_write)}")

    def close(self) -> None:
        """Stops the flush thread and writes whatever is still buffered."""
        self.stop_event.set()
        if self.flush_thread.is_alive():
            self.flush_thread.join()
        self.flush()
        super().close()
