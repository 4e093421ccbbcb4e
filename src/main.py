import sys
import logging

# Basic console logger for messages BEFORE full setup is complete.
# This logger will be replaced by the full setup later.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("console")

import setproctitle
from src.local.config import effective_settings as config
from src.local.console import ConsoleCommands, SystemInputQueue
from src.local.external import ServerJarManager
from src.local.options import Options
from src.local.wrapper import ServerSupervisor
from src.log.setup import setup_logging


def main(argv=None) -> int:
    """
    The main entry point: prepares the server jar, starts the server and
    relays console input to it until the server stops.

    :return: The host process exit status.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if "--verbose" in args:
        config.VERBOSE_LOGGING = True
        args.remove("--verbose")

    setup_logging(logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO)
    setproctitle.setproctitle(config.PROCESS_TITLE)
    log.info("=" * 20 + " ServerWrap Starting " + "=" * 20)

    options = Options().load()
    options.save()

    if not ServerJarManager(options).prepare_server_jar():
        log.critical(f"No usable {config.SERVER_JAR}. Cannot start the server.")
        return 1

    input_queue = SystemInputQueue()
    supervisor = ServerSupervisor(options, input_queue=input_queue)
    input_queue.local_handler = ConsoleCommands(supervisor)
    input_queue.start()

    if not supervisor.start():
        log.critical("The server stopped before it finished loading.")
        supervisor.wait_for_termination()
        return 1

    print("Type '!help' for wrapper commands. Anything else goes to the server.")
    try:
        supervisor.wait_for_termination()
    except KeyboardInterrupt:
        log.warning("Interrupted. Stopping the server...")
        supervisor.stop()

    exit_info = supervisor.last_exit
    if exit_info and not exit_info.solicited and exit_info.returncode != 0:
        return 1
    return 0


if __name__ == "__main__":
    exit_code = main()
    print("Exiting ServerWrap. See you next time!")
    sys.exit(exit_code)
