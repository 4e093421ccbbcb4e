"""
Logging module for the application.
This module provides functionality to set up logging and to route the
supervised server's output into it.
"""

from .setup import setup_logging
from .sink import ProcessLogSink

__all__ = ["setup_logging", "ProcessLogSink"]
