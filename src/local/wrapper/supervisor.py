import sys
import enum
import time
import queue
import functools
import logging
import threading
import subprocess
from pathlib import Path
from collections import namedtuple
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple, Union

from src.local.config import effective_settings as config
from src.local.options import ServerOptions
from src.log.sink import STDERR, STDOUT, ProcessLogSink
from src.local.wrapper.process_utils import build_command, spawn_process
from src.local.wrapper.readiness import LogSink, ReadinessDetector, ReadinessState
from src.local.wrapper.shutdown import TerminationHook
from src.local.wrapper.workers import Command, InputRelay, ProcessMonitor, StreamRelay, Worker

if TYPE_CHECKING:
    from src.local.options import Options

log = logging.getLogger(__name__)

ProcessExit = namedtuple('ProcessExit', ['returncode', 'solicited'])
CohortMember = Union[Worker, TerminationHook]


class SupervisorState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    STOPPING = "stopping"


ACTIVE_STATES = {SupervisorState.LOADING, SupervisorState.READY, SupervisorState.FAILED}


class ServerSupervisor:
    """
    Runs one server process at a time together with the workers bound to it.

    `start()` launches the server and blocks until it has finished loading.
    `stop()` sends the server its stop command and tears the workers down in
    a fixed order. `execute()` sends a console command to the server.

    The lifecycle state is only changed by this class. Worker threads report
    to it through `_on_process_exit`, which takes the short state lock but
    never the lifecycle lock held by `start()` and `stop()`.
    """

    def __init__(
        self,
        options: "Options",
        input_queue: Optional["queue.Queue[Command]"] = None,
        sink: Optional[LogSink] = None,
        command_builder: Callable[["Options"], Sequence[str]] = build_command,
        working_dir: Optional[Path] = None,
        ready_marker: Optional[str] = None,
        grace_period: Optional[float] = None,
        on_unsolicited_exit: Optional[Callable[[ProcessExit], None]] = None,
    ) -> None:
        """
        :param options: Configuration provider used to build the launch command.
        :param input_queue: Console commands to forward to the server.
        :param sink: Receives every line of server output.
        :param command_builder: Turns the options into the server's argument vector.
        :param working_dir: Directory the server runs in (holds server.properties).
        :param ready_marker: Output substring signalling the server has loaded.
        :param grace_period: Seconds the server gets to exit after the stop command.
        :param on_unsolicited_exit: Called when the server exits without being stopped.
        """
        self.options = options
        self.input_queue = input_queue
        self.sink = sink or ProcessLogSink()
        self.command_builder = command_builder
        self.working_dir = Path(working_dir) if working_dir else config.BIN_DIR
        self.ready_marker = ready_marker or config.SERVER_READY_MARKER
        self.grace_period = grace_period
        self.on_unsolicited_exit = on_unsolicited_exit
        self.server_options = ServerOptions(options, self.working_dir / "server.properties")

        self.last_exit: Optional[ProcessExit] = None
        self._state = SupervisorState.IDLE
        self._state_lock = threading.Lock()
        self._lifecycle_lock = threading.RLock()
        self._terminated = threading.Event()
        self._terminated.set()

        self._process: Optional[subprocess.Popen] = None
        self._detector: Optional[ReadinessDetector] = None
        self._input_relay: Optional[InputRelay] = None
        self._hook: Optional[TerminationHook] = None
        self._cohort: List[CohortMember] = []
        self._started_at: Optional[float] = None
        self._generation = 0

    #* --- State ---
    @property
    def state(self) -> SupervisorState:
        with self._state_lock:
            return self._state

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def readiness(self) -> Optional[ReadinessState]:
        detector = self._detector
        return detector.state if detector else None

    @property
    def cohort(self) -> Tuple[CohortMember, ...]:
        return tuple(self._cohort)

    @property
    def process(self) -> Optional[subprocess.Popen]:
        return self._process

    def _set_state(self, state: SupervisorState) -> None:
        with self._state_lock:
            self._state = state

    def wait_for_termination(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the current server generation has been torn down."""
        return self._terminated.wait(timeout)

    #* --- Lifecycle ---
    def start(self) -> bool:
        """
        Launches the server and waits until it has finished loading.

        A server that cannot be launched at all is fatal: the error is logged
        and the host process exits with status 1.

        :return: True if the server became ready, False if it exited while loading.
        """
        with self._lifecycle_lock:
            with self._state_lock:
                if self._state is not SupervisorState.IDLE:
                    log.warning(f"Server is already {self._state.value}. Ignoring start request.")
                    return self._state is SupervisorState.READY
                self._state = SupervisorState.STARTING

            self._terminated.clear()
            self.server_options.save()
            try:
                command = self.command_builder(self.options)
                process = spawn_process(command, self.working_dir)
            except (OSError, ValueError) as e:
                log.critical(f"FATAL ERROR: Could not start the server: {e}", exc_info=True)
                self._set_state(SupervisorState.IDLE)
                self._terminated.set()
                sys.exit(1)

            self._process = process
            self._generation += 1
            on_exit = functools.partial(self._on_process_exit, generation=self._generation)
            self._started_at = time.time()
            detector = ReadinessDetector(self.sink, self.ready_marker)
            self._detector = detector
            self._hook = TerminationHook(self.stop)
            self._input_relay = InputRelay(self.input_queue, process.stdin)
            self._cohort = [
                self._hook,
                ProcessMonitor(process, detector, on_exit, grace_period=self.grace_period),
                StreamRelay(process.stdout, STDOUT, detector),
                StreamRelay(process.stderr, STDERR, detector),
                self._input_relay,
            ]
            self._set_state(SupervisorState.LOADING)
            for worker in self._cohort:
                worker.start()

        log.info("Waiting for the server to finish loading...")
        readiness = detector.wait_until_loaded()

        with self._state_lock:
            if readiness is ReadinessState.READY and self._state is SupervisorState.LOADING:
                self._state = SupervisorState.READY

        if readiness is ReadinessState.READY:
            log.info(f"Server is ready after {time.time() - self._started_at:.2f} seconds.")
            return True
        log.error("Server failed to start.")
        return False

    def stop(self) -> bool:
        """
        Stops the server and its workers, blocking until all of them have exited.

        Does nothing if no server is running or a stop is already underway.
        The process monitor is joined before the stream relays, so the server's
        shutdown output is relayed until it exits (or is terminated after the
        grace period).

        :return: True if this call tore the server down.
        """
        with self._lifecycle_lock:
            with self._state_lock:
                if self._state not in ACTIVE_STATES:
                    return False
                self._state = SupervisorState.STOPPING
            # A termination signal from here on must not re-enter the teardown.
            self._hook.stop()

            log.info("Stopping server...")
            self.execute(config.STOP_COMMAND, "")

            for worker in self._cohort:
                worker.stop()
            for worker in self._cohort:
                self._join(worker)
            self._hook.unregister()

            if self._started_at:
                log.info(f"Server stopped. Total runtime: {time.strftime('%H:%M:%S', time.gmtime(time.time() - self._started_at))}")
            self._cohort = []
            self._input_relay = None
            self._hook = None
            self._process = None
            self._set_state(SupervisorState.IDLE)
            self._terminated.set()
            return True

    @staticmethod
    def _join(worker: CohortMember) -> None:
        while True:
            try:
                if worker.join():
                    return
            except KeyboardInterrupt:
                log.warning(f"Interrupted while waiting for {worker.thread_name}. Still waiting.")

    def execute(self, command: str, arguments: str = "") -> bool:
        """
        Sends a console command to the server.

        :return: True once the command has been written to the server's stdin.
        """
        relay = self._input_relay
        if relay is None:
            log.warning(f"No server is running. Command '{command}' was not sent.")
            return False
        return relay.inject(command, arguments)

    #* --- Worker callbacks ---
    def _stop_generation(self, generation: int) -> None:
        with self._lifecycle_lock:
            if self._generation == generation:
                self.stop()

    def _on_process_exit(self, returncode: int, generation: int = 0) -> None:
        """Called on the process monitor thread once the server has exited."""
        with self._state_lock:
            solicited = self._state is SupervisorState.STOPPING
            if self._state in (SupervisorState.STARTING, SupervisorState.LOADING):
                self._state = SupervisorState.FAILED

        exit_info = ProcessExit(returncode, solicited)
        self.last_exit = exit_info
        if solicited:
            log.info(f"Server exited with code {returncode}.")
            return

        log.error(f"Server terminated unexpectedly with exit code {returncode}.")
        if self.on_unsolicited_exit:
            try:
                self.on_unsolicited_exit(exit_info)
            except Exception as e:
                log.error(f"Error in unsolicited exit callback: {e}", exc_info=True)

        threading.Thread(target=self._stop_generation, args=(generation,), name="CohortTeardownThread").start()
