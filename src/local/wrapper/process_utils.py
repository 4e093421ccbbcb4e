import shlex
import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from src.local.config import effective_settings as config

if TYPE_CHECKING:
    from src.local.options import Options

log = logging.getLogger(__name__)


#* --- Launch Command ---
def get_server_jar(options: "Options") -> str:
    """Returns the jar to launch: the configured alternate jar, or the downloaded one."""
    if options.contains("alternateJarFile"):
        return options.get("alternateJarFile")
    return str((config.BIN_DIR / config.SERVER_JAR).resolve())

def get_heap_sizes(options: "Options") -> tuple:
    """
    Returns (maximum, initial) heap sizes in megabytes.

    The initial heap is INITIAL_HEAP_MB, lowered to the maximum when less
    memory is configured, because the JVM refuses an initial heap larger
    than its maximum.
    """
    maximum = options.get_int("memory")
    if maximum <= 0:
        raise ValueError(f"Option 'memory' must be a positive number of megabytes, got {maximum}.")
    return maximum, min(config.INITIAL_HEAP_MB, maximum)

def build_command(options: "Options") -> List[str]:
    """
    Builds the argument vector launching the server.

    :param options: The wrapper options (memory, javaArguments, alternateJarFile).
    :return: e.g. ['java', '-Xmx2048M', '-Xms1024M', '-jar', '.../minecraft_server.jar', 'nogui']
    """
    maximum, initial = get_heap_sizes(options)
    java_arguments = shlex.split(options.get("javaArguments"), posix=not config.IS_WINDOWS)
    return [
        config.JAVA_EXECUTABLE,
        *java_arguments,
        f"-Xmx{maximum}M",
        f"-Xms{initial}M",
        "-jar", get_server_jar(options),
        "nogui",
    ]

#* --- Process Creation ---
def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific keyword arguments for subprocess.Popen."""
    if config.IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NO_WINDOW | subprocess.CREATE_NEW_PROCESS_GROUP}
    # A separate session keeps terminal signals (Ctrl+C) away from the server;
    # it is stopped through its console instead.
    return {"start_new_session": True}

def spawn_process(args: Sequence[str], cwd: Optional[Path] = None) -> subprocess.Popen:
    """
    Starts the server with all three standard streams piped.

    :param args: The argument vector.
    :param cwd: Working directory for the server; created if missing.
    :raises OSError: If the executable cannot be started.
    """
    if cwd is not None:
        Path(cwd).mkdir(parents=True, exist_ok=True)
    log.info(f"Starting server: {' '.join(args)}")
    process = subprocess.Popen(
        list(args),
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=str(cwd) if cwd is not None else None,
        **_get_popen_creation_flags()
    )
    log.info(f"Server started with PID: {process.pid}")
    return process
