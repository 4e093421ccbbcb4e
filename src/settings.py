"""
This module contains the configuration settings for the ServerWrap application.
It defines paths, launch settings for the supervised server, timing values for
the relay workers and logging configuration.
It is used throughout the application to ensure consistent settings and paths.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
BIN_DIR = pathlib.Path(os.getenv("SERVERWRAP_BIN_DIR", BASE_DIR / "bin"))
LOGS_DIR = pathlib.Path(os.getenv("SERVERWRAP_LOGS_DIR", BASE_DIR / "logs"))

#* --- Application File Paths ---
OPTIONS_PATH = BIN_DIR / "serverwrap.json"
SERVER_PROPERTIES_PATH = BIN_DIR / "server.properties"
OVERRIDES_JSON_PATH = BIN_DIR / "overrides.json"
LOG_DB_PATH = LOGS_DIR / "serverwrap_logs.db"

#* --- Server Artifact ---
SERVER_JAR = "minecraft_server.jar"
DOWNLOAD_URL = os.getenv("SERVERWRAP_DOWNLOAD_URL", "http://www.minecraft.net/download/minecraft_server.jar")
MIN_JAR_ENTRIES = 200          # A valid server jar holds more entries than this
DOWNLOAD_CHUNK_SIZE = 8192
DOWNLOAD_TIMEOUT = 30          # seconds

#* --- Launch Settings ---
JAVA_EXECUTABLE = os.getenv("JAVA_EXECUTABLE", "java")
INITIAL_HEAP_MB = 1024         # -Xms, never above the configured maximum heap
SERVER_READY_MARKER = "Done ("
STOP_COMMAND = "stop"

#* --- Supervisor Settings ---
STREAM_POLL_INTERVAL = 0.2     # seconds between stop checks while a stream is silent
STREAM_DRAIN_TIMEOUT = 2.0     # seconds a stopped relay keeps reading until end-of-stream
INPUT_POLL_INTERVAL = 0.2      # seconds between stop checks while the command queue is empty
GRACEFUL_SHUTDOWN_TIMEOUT = int(os.getenv("GRACEFUL_SHUTDOWN_TIMEOUT", "30"))  # seconds before terminating the server
KILL_TIMEOUT = 5               # seconds after terminate before kill
PROCESS_TITLE = "ServerWrap - Supervisor"

#* --- Application variables ---
VERBOSE_LOGGING = False
IS_WINDOWS = sys.platform == "win32"

#* --- MODIFIABLE SETTINGS (Changeable through overrides.json) ---
MODIFIABLE_SETTINGS = {
    # Logging
    "LOG_BUFFER_SIZE", "LOG_BUFFER_FLUSH_INTERVAL", "LOG_HISTORY_COUNT",
    # Shutdown
    "GRACEFUL_SHUTDOWN_TIMEOUT", "KILL_TIMEOUT",
    # Readiness
    "SERVER_READY_MARKER",
}

#* --- Default Values for Modifiable Settings ---
LOG_BUFFER_SIZE = 100
LOG_BUFFER_FLUSH_INTERVAL = 10
LOG_HISTORY_COUNT = 50

#* --- Default Wrapper Options (persisted to OPTIONS_PATH) ---
DEFAULT_OPTIONS = {
    "memory": "1024",
    "javaArguments": "",
    "alternateJarFile": "",
    "port": "25565",
    "ipAddress": "",
    "levelName": "world",
    "maxPlayers": "20",
    "onlineMode": "true",
    "motd": "A ServerWrap Server",
}

# Maps wrapper option names to the keys the server reads from server.properties.
SERVER_PROPERTY_KEYS = {
    "port": "server-port",
    "ipAddress": "server-ip",
    "levelName": "level-name",
    "maxPlayers": "max-players",
    "onlineMode": "online-mode",
    "motd": "motd",
}
