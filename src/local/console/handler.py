import os
import time
import psutil
import logging
from typing import TYPE_CHECKING, List

from src.local.config import effective_settings as config
from src.local.database import LogDBManager

if TYPE_CHECKING:
    from src.local.wrapper import ServerSupervisor

log = logging.getLogger(__name__)


def _format_process_line(label: str, proc: psutil.Process) -> str:
    cpu = proc.cpu_percent(interval=0.1)
    mem = proc.memory_info().rss
    return f"  - {label:<20} : PID {proc.pid:<8} | Status: {proc.status().upper()} | CPU: {cpu:.1f}% | MEM: {mem/1024/1024:.1f} MB"

def display_status(supervisor: "ServerSupervisor") -> None:
    """Displays the wrapper and server state, including resource usage."""
    print("\n--- ServerWrap Status ---")
    print(f"  Supervisor state : {supervisor.state.value.upper()}")
    if supervisor.readiness:
        print(f"  Server readiness : {supervisor.readiness.value.upper()}")

    try:
        print(_format_process_line("wrapper", psutil.Process(os.getpid())))
    except psutil.Error:
        pass

    process = supervisor.process
    if process is None:
        print("  Server is STOPPED.")
    else:
        try:
            print(_format_process_line("server", psutil.Process(process.pid)))
        except psutil.NoSuchProcess:
            print(f"  - {'server':<20} : PID {process.pid:<8} | Status: STOPPED")
        except psutil.AccessDenied:
            print(f"  - {'server':<20} : PID {process.pid:<8} | Status: RUNNING (Access Denied)")

    if supervisor.last_exit:
        kind = "requested" if supervisor.last_exit.solicited else "unexpected"
        print(f"  Last exit        : code {supervisor.last_exit.returncode} ({kind})")
    print("-" * 25 + "\n")

def handle_logs_command() -> None:
    """Prints the most recent persisted log entries."""
    if not config.LOG_DB_PATH.exists():
        print("No log database found.")
        return

    # Write out whatever the SQLite handler is still buffering.
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_db = LogDBManager(config.LOG_DB_PATH)
    print(f"\n--- Displaying last {config.LOG_HISTORY_COUNT} log entries ---")
    for log_entry in log_db.fetch_last_entries(config.LOG_HISTORY_COUNT):
        if log_entry.level == "DEBUG" and not config.VERBOSE_LOGGING:
            continue
        print(log_entry.message)
    print(f"--- {time.strftime('%H:%M:%S')} ---\n")

def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    config.VERBOSE_LOGGING = not config.VERBOSE_LOGGING
    new_level = logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO

    root_logger = logging.getLogger()
    found_handler = False
    for handler in root_logger.handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(new_level)
            found_handler = True
            break

    status = "ON" if config.VERBOSE_LOGGING else "OFF"
    if found_handler:
        print(f"Verbose console logging is now {status}.")
    else:
        print("Could not find console handler to modify level.")

def handle_set_command(args: List[str]) -> None:
    """Changes a modifiable setting: `!set KEY VALUE`. Without arguments, lists them."""
    if not args:
        print("\nModifiable settings:")
        for key in sorted(config.MODIFIABLE_SETTINGS):
            print(f"  {key:<26} = {getattr(config, key)}")
        print()
        return
    if len(args) < 2:
        print("Usage: !set KEY VALUE")
        return

    key, value = args[0].upper(), " ".join(args[1:])
    if config.set_override(key, value):
        print(f"{key} is now {getattr(config, key)}.")
    else:
        print(f"Could not set {key}. See the log for details.")

def print_help() -> None:
    """Prints the wrapper's own commands. Anything else is sent to the server."""
    print("\nWrapper commands (prefix with '!'):")
    print("  !status                - Show the state of the wrapper and the server.")
    print("  !logs                  - Show the most recent log entries.")
    print("  !verbose               - Toggle detailed DEBUG log output in the console.")
    print("  !set [KEY VALUE]       - List or change modifiable settings (saved to overrides.json).")
    print("  !exit                  - Stop the server gracefully and exit.")
    print("  !help                  - Show this help message.")
    print("Any other input is sent to the server's console.")
    print()
