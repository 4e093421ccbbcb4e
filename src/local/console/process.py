import logging
import threading
from typing import TYPE_CHECKING, Callable, Dict, List

from src.local.console.handler import (
    display_status, handle_logs_command, handle_set_command, print_help, toggle_verbose_logging
)

if TYPE_CHECKING:
    from src.local.wrapper import ServerSupervisor

log = logging.getLogger(__name__)

LOCAL_PREFIX = "!"


class ConsoleCommands:
    """
    Handles the wrapper's own console commands.

    Wrapper commands start with '!' so they never shadow a server command.
    """

    def __init__(self, supervisor: "ServerSupervisor") -> None:
        self.supervisor = supervisor
        self.command_map: Dict[str, Callable[[List[str]], None]] = {
            "status": lambda args: display_status(self.supervisor),
            "logs": lambda args: handle_logs_command(),
            "verbose": lambda args: toggle_verbose_logging(),
            "set": handle_set_command,
            "help": lambda args: print_help(),
            "exit": lambda args: self._request_exit(),
        }

    def _request_exit(self) -> None:
        log.info("Exit requested from the console.")
        # Stopping blocks until the server is down; keep the console reader free.
        threading.Thread(target=self.supervisor.stop, name="ConsoleStopThread").start()

    def __call__(self, command: str, args: List[str]) -> bool:
        """
        Executes a wrapper command.

        :param command: The first word typed on the console.
        :param args: The remaining words.
        :return bool: True if the command was a wrapper command, False to forward it to the server.
        """
        if not command.startswith(LOCAL_PREFIX):
            return False

        name = command[len(LOCAL_PREFIX):].lower()
        log.debug(f"Executing wrapper command: {name}, args: {args}")
        action = self.command_map.get(name)
        if action is None:
            print(f"Unknown wrapper command: '{command}'. Type '!help' for a list of commands.")
            return True
        action(args)
        return True
