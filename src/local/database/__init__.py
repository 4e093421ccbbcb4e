"""
This module initializes the local database management system.
It imports the database manager for the persisted log.
"""

from .log import LogDBManager, LogEntry

__all__ = ["LogDBManager", "LogEntry"]
