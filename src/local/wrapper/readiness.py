import enum
import logging
import threading
from typing import Optional, Protocol

log = logging.getLogger(__name__)


class LogSink(Protocol):
    def write(self, tag: str, line: str) -> None: ...


class ReadinessState(enum.Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ReadinessDetector:
    """
    Receives every line the server prints, passes it on to the log sink and
    watches for the marker the server prints once it has finished loading.

    Both stream relays call `handle_line` concurrently, so the state is only
    changed while holding the condition's lock. One detector exists per
    process generation.
    """

    def __init__(self, sink: LogSink, marker: str) -> None:
        self.sink = sink
        self.marker = marker
        self._state = ReadinessState.LOADING
        self._condition = threading.Condition()

    @property
    def state(self) -> ReadinessState:
        with self._condition:
            return self._state

    def handle_line(self, tag: str, line: str) -> None:
        """
        Logs one line of server output and checks it for the readiness marker.

        :param tag: The stream the line came from ('stdout' or 'stderr').
        :param line: The decoded line, without its line terminator.
        """
        self.sink.write(tag, line)
        if self.marker not in line:
            return

        with self._condition:
            if self._state is not ReadinessState.LOADING:
                return
            self._state = ReadinessState.READY
            self._condition.notify_all()
        log.info("Server finished loading.")

    def process_exited(self, returncode: Optional[int]) -> None:
        """
        Called by the process monitor once the server has exited.

        A server that exits before printing the marker never becomes ready;
        waiters are released with FAILED.
        """
        with self._condition:
            if self._state is not ReadinessState.LOADING:
                return
            self._state = ReadinessState.FAILED
            self._condition.notify_all()
        log.error(f"Server exited with code {returncode} before it finished loading.")

    def wait_until_loaded(self, timeout: Optional[float] = None) -> ReadinessState:
        """
        Blocks until the server is ready or has failed.

        :param timeout: Optional upper bound in seconds; None waits indefinitely.
        :return: The state observed when the wait ended. LOADING only if the timeout expired.
        """
        with self._condition:
            self._condition.wait_for(lambda: self._state is not ReadinessState.LOADING, timeout=timeout)
            return self._state
