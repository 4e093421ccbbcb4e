"""
This module initializes the external artifact management.
It imports the `ServerJarManager` class from the `server_jar` module.
"""

from .server_jar import ServerJarManager

__all__ = ["ServerJarManager"]
