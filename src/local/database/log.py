import time
import sqlite3
import logging
from pathlib import Path
from collections import namedtuple
from typing import Any, Dict, List
from src.local.database.base import BaseDBManager

LogEntry = namedtuple('LogEntry', ['timestamp', 'level', 'module', 'stream', 'message'])
log = logging.getLogger(__name__)


class LogDBManager(BaseDBManager):
    """
    Manages the SQLite database holding the wrapper's own log records and the
    relayed server output.
    """

    def __init__(self, db_path: Path):
        super().__init__(db_path, lock=None, enable_wal=False)

    def initialize_database(self) -> None:
        """Ensures the log table exists."""
        try:
            self.execute('''
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp REAL,
                    level TEXT,
                    module TEXT,
                    funcName TEXT,
                    lineno INTEGER,
                    message TEXT
                )
            ''')
            log.debug("Log database table created/verified.")
        except sqlite3.Error as e:
            log.critical(f"Could not create log database table: {e}", exc_info=True)
            raise

    def insert_log_batch(self, log_entries: List[Dict[str, Any]]) -> None:
        """
        Inserts multiple log entries in a single transaction.

        :param log_entries: Dictionaries with keys: timestamp, level, module, funcName, lineno, message
        """
        if not log_entries:
            return

        params = [(
            entry['timestamp'],
            entry['level'],
            entry['module'],
            entry['funcName'],
            entry['lineno'],
            entry['message']
        ) for entry in log_entries]

        try:
            self.execute_many(
                '''INSERT INTO logs (timestamp, level, module, funcName, lineno, message)
                   VALUES (?, ?, ?, ?, ?, ?)''',
                params
            )
        except sqlite3.Error as e:
            log.error(f"Failed to insert log batch of {len(log_entries)} entries: {e}", exc_info=True)
            raise

    def fetch_last_entries(self, limit: int) -> List[LogEntry]:
        """
        Fetches the most recent N log entries, oldest first.

        :param limit: The maximum number of log entries to retrieve.
        :return list: A list of LogEntry namedtuples.
        """
        entries = []
        try:
            rows = self.fetch_all(
                "SELECT timestamp, level, module, funcName, message FROM logs ORDER BY id DESC LIMIT ?",
                (limit,)
            )
        except sqlite3.Error as e:
            log.error(f"Failed to fetch log entries from database: {e}")
            return entries

        for row in reversed(rows):
            dt = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(row['timestamp']))
            stream = row['funcName'] if row['module'] == 'server' else None
            entries.append(LogEntry(
                timestamp=row['timestamp'], level=row['level'], module=row['module'], stream=stream,
                message=f"{dt} - {row['level']:<8} - [{row['module']}] - {row['message']}"
            ))
        return entries
