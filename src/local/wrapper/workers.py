"""
Workers bound to one generation of the supervised server.

Every worker offers the same three operations: `start()`, `stop()` (a
cooperative stop request) and `join()`. The supervisor starts them together
as a cohort and joins them in the order they were created.
"""
import os
import queue
import logging
import selectors
import threading
import subprocess
from typing import IO, Callable, Optional, Tuple

from src.local.config import effective_settings as config
from src.local.wrapper.readiness import ReadinessDetector
from src.local.wrapper.shutdown import terminate_process_tree

log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096

Command = Tuple[str, str]


class Worker:
    """Base class running `_run` on a daemon thread until a stop is requested."""

    thread_name = "Worker"

    def __init__(self) -> None:
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"{self.thread_name} has already been started.")
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.thread_name)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Waits for the worker thread to finish.

        :return: True once the thread has exited (or was never started).
        """
        if self._thread is None or self._thread is threading.current_thread():
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        raise NotImplementedError


class StreamRelay(Worker):
    """
    Reads one output stream of the server line by line and hands each line,
    tagged with the stream name, to the readiness detector.

    A stop request does not cut the stream off: the server keeps printing
    while it shuts down, so the relay drains until end-of-stream. `join`
    waits up to `drain_timeout` for that, then ends the read loop, which
    notices within `poll_interval` on POSIX (the relay waits for data with a
    selector). The stream is closed when the relay ends.
    """

    def __init__(self, stream: IO[bytes], tag: str, detector: ReadinessDetector,
                 poll_interval: Optional[float] = None, drain_timeout: Optional[float] = None) -> None:
        super().__init__()
        self.stream = stream
        self.tag = tag
        self.detector = detector
        self.poll_interval = poll_interval or config.STREAM_POLL_INTERVAL
        self.drain_timeout = config.STREAM_DRAIN_TIMEOUT if drain_timeout is None else drain_timeout
        self.thread_name = f"StreamRelay-{tag}"
        self._drain_requested = threading.Event()

    @property
    def stop_requested(self) -> bool:
        return self._drain_requested.is_set()

    def stop(self) -> None:
        self._drain_requested.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        if not self._drain_requested.is_set() or super().join(self.drain_timeout):
            return super().join(timeout)

        log.warning(f"Server {self.tag} still open {self.drain_timeout}s after stop. Closing it.")
        self._stop_event.set()
        return super().join(timeout)

    def _forward(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if not line.strip():
            return
        try:
            self.detector.handle_line(self.tag, line)
        except Exception as e:
            log.error(f"Error handling {self.tag} line: {e}", exc_info=True)

    def _run(self) -> None:
        selector = None
        pending = b""
        try:
            fd = self.stream.fileno()
            if not config.IS_WINDOWS:
                selector = selectors.DefaultSelector()
                selector.register(fd, selectors.EVENT_READ)

            while not self._stop_event.is_set():
                if selector is not None and not selector.select(self.poll_interval):
                    continue
                chunk = os.read(fd, READ_CHUNK_SIZE)
                if not chunk:
                    break
                *lines, pending = (pending + chunk).split(b"\n")
                for raw in lines:
                    self._forward(raw)

            if pending:
                self._forward(pending)
        except (OSError, ValueError) as e:
            log.error(f"Reading server {self.tag} failed: {e}")
        finally:
            if selector is not None:
                selector.close()
            try:
                self.stream.close()
            except OSError as e:
                log.debug(f"Closing server {self.tag} failed: {e}")
        log.debug(f"{self.thread_name} stopped.")


class InputRelay(Worker):
    """
    The only writer to the server's stdin.

    Commands come from the console queue and from `inject`, which the
    supervisor uses to send the stop command. Both paths write whole lines
    under one lock, so two commands never interleave.
    """

    thread_name = "InputRelay"

    def __init__(self, source: Optional["queue.Queue[Command]"], stdin: IO[bytes],
                 poll_interval: Optional[float] = None) -> None:
        super().__init__()
        self.source = source
        self.stdin = stdin
        self.poll_interval = poll_interval or config.INPUT_POLL_INTERVAL
        self._write_lock = threading.Lock()

    @staticmethod
    def format_command(command: str, arguments: str = "") -> bytes:
        return f"{command} {arguments}\n".encode("utf-8")

    def inject(self, command: str, arguments: str = "") -> bool:
        """
        Writes a command to the server right away.

        :return: True if the line was written and flushed.
        """
        line = self.format_command(command, arguments)
        with self._write_lock:
            try:
                self.stdin.write(line)
                self.stdin.flush()
                return True
            except (OSError, ValueError) as e:
                log.error(f"Could not send '{command}' to the server: {e}")
                return False

    def _run(self) -> None:
        try:
            if self.source is None:
                self._stop_event.wait()
                return

            while not self.stop_requested:
                try:
                    command, arguments = self.source.get(timeout=self.poll_interval)
                except queue.Empty:
                    continue
                if self.stop_requested:
                    log.warning(f"Server is stopping. Discarded command '{command} {arguments}'.")
                    break
                self.inject(command, arguments)
        finally:
            with self._write_lock:
                try:
                    self.stdin.close()
                except OSError as e:
                    log.debug(f"Closing server stdin failed: {e}")
            log.debug(f"{self.thread_name} stopped.")


class ProcessMonitor(Worker):
    """
    Waits for the server to exit, then tells the readiness detector (so a
    pending start() is released) and the supervisor.

    Once a stop has been requested, `join` gives the server
    `grace_period` seconds to exit on its own before the process tree is
    terminated.
    """

    thread_name = "ProcessMonitor"

    def __init__(self, process: subprocess.Popen, detector: ReadinessDetector,
                 on_exit: Callable[[int], None], grace_period: Optional[float] = None,
                 kill_timeout: Optional[float] = None) -> None:
        super().__init__()
        self.process = process
        self.detector = detector
        self.on_exit = on_exit
        self.grace_period = config.GRACEFUL_SHUTDOWN_TIMEOUT if grace_period is None else grace_period
        self.kill_timeout = config.KILL_TIMEOUT if kill_timeout is None else kill_timeout

    def _run(self) -> None:
        returncode = self.process.wait()
        log.debug(f"Server process {self.process.pid} exited with code {returncode}.")
        self.detector.process_exited(returncode)
        try:
            self.on_exit(returncode)
        except Exception as e:
            log.error(f"Error reporting server exit: {e}", exc_info=True)

    def join(self, timeout: Optional[float] = None) -> bool:
        if not self.stop_requested or self.process.poll() is not None:
            return super().join(timeout)

        if super().join(self.grace_period):
            return True

        log.warning(f"Server did not stop within {self.grace_period}s. Terminating it.")
        terminate_process_tree(self.process.pid, self.kill_timeout)
        return super().join(timeout)
