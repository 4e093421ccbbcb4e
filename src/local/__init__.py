"""
Local package for the ServerWrap application.

This package provides the effective configuration through the config module,
the wrapper options, and the supervisor that runs the game server.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
