"""
This module initializes the console package: the queue of commands typed on
the wrapper's console and the wrapper's own '!' commands.
"""

from .input import SystemInputQueue, parse_command_line
from .process import ConsoleCommands

__all__ = ["SystemInputQueue", "parse_command_line", "ConsoleCommands"]
