import sys
import atexit
import signal
import psutil
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger(__name__)


def _hook_signals() -> List[int]:
    signals = [signal.SIGTERM]
    if hasattr(signal, "SIGHUP"):
        signals.append(signal.SIGHUP)
    return signals


def terminate_process_tree(pid: int, timeout: float) -> None:
    """
    Terminates a process and all of its children, killing whatever is
    still alive after `timeout` seconds.

    :param pid: The PID of the parent process.
    :param timeout: Seconds to wait after SIGTERM before SIGKILL.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    procs = [parent]
    try:
        procs.extend(parent.children(recursive=True))
    except psutil.NoSuchProcess:
        log.debug(f"Process {pid} exited before its children could be listed.")

    for proc in procs:
        try:
            log.debug(f"Sending SIGTERM to PID {proc.pid}")
            proc.terminate()
        except psutil.NoSuchProcess:
            continue

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        try:
            log.warning(f"Killing stubborn process PID {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            continue


class TerminationHook:
    """
    Runs the supervisor's stop sequence when the host process is told to
    terminate (SIGTERM/SIGHUP) or the interpreter exits, so the server is
    never left running without its wrapper.

    Signal handlers can only be installed from the main thread; elsewhere
    the atexit callback is the only trigger.
    """

    thread_name = "TerminationHook"

    def __init__(self, callback: Callable[[], Optional[bool]]) -> None:
        self.callback = callback
        self._armed = False
        self._registered = False
        self._previous_handlers: Dict[int, Any] = {}

    def start(self) -> None:
        atexit.register(self._on_exit)
        self._registered = True
        self._armed = True

        if threading.current_thread() is not threading.main_thread():
            log.debug("Not on the main thread; termination signals are not hooked.")
            return
        for signum in _hook_signals():
            self._previous_handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, self._on_signal)

    def stop(self) -> None:
        """Disarms the hook; a signal arriving during teardown is not acted on."""
        self._armed = False

    def join(self, timeout: Optional[float] = None) -> bool:
        return True

    def unregister(self) -> None:
        """Removes the atexit callback and restores the previous signal handlers."""
        if not self._registered:
            return
        self._registered = False
        self._armed = False
        atexit.unregister(self._on_exit)

        if threading.current_thread() is not threading.main_thread():
            # Handlers stay installed and hand signals on to the previous ones.
            return
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

    def _on_exit(self) -> None:
        if not self._armed:
            return
        self._armed = False
        log.info("Interpreter is exiting. Stopping the server first.")
        self.callback()

    def _on_signal(self, signum: int, frame) -> None:
        if self._armed:
            self._armed = False
            log.warning(f"Received {signal.Signals(signum).name}. Stopping the server before exiting.")
            if self.callback() is False:
                # The interrupted frame is already stopping the server.
                log.debug("A stop is already underway. Letting it finish.")
                return
            sys.exit(0)

        if self._registered:
            log.debug(f"Ignoring {signal.Signals(signum).name} during shutdown.")
            return

        previous = self._previous_handlers.get(signum, signal.SIG_DFL)
        if callable(previous):
            previous(signum, frame)
        elif previous != signal.SIG_IGN:
            sys.exit(128 + signum)
