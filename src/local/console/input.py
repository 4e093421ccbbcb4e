import sys
import queue
import logging
import threading
from typing import Callable, List, Optional, TextIO, Tuple

log = logging.getLogger(__name__)

LocalCommandHandler = Callable[[str, List[str]], bool]


def parse_command_line(line: str) -> Optional[Tuple[str, str]]:
    """
    Splits a console line into (command, arguments).

    :return: None for blank lines.
    """
    line = line.strip()
    if not line:
        return None
    command, _, arguments = line.partition(" ")
    return command, arguments.strip()


class SystemInputQueue(queue.Queue):
    """
    Queue of (command, arguments) pairs typed on the wrapper's console.

    A daemon thread reads the console. Lines the local handler accepts are
    wrapper commands; everything else is queued for the server's input relay.
    """

    def __init__(self, stream: Optional[TextIO] = None, local_handler: Optional[LocalCommandHandler] = None) -> None:
        super().__init__()
        self.stream = stream or sys.stdin
        self.local_handler = local_handler
        self.closed = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._read_loop, daemon=True, name="ConsoleInputThread")
        self._thread.start()

    def _read_loop(self) -> None:
        try:
            for line in iter(self.stream.readline, ""):
                parsed = parse_command_line(line)
                if parsed is None:
                    continue
                command, arguments = parsed
                if self.local_handler and self.local_handler(command, arguments.split()):
                    continue
                self.put((command, arguments))
        except (OSError, ValueError) as e:
            log.debug(f"Console input closed: {e}")
        finally:
            self.closed.set()
            log.debug("Console input thread has stopped.")
