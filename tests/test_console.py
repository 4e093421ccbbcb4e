import io
import threading
import logging

import pytest

from src.local.config import effective_settings as config
from src.local.console import ConsoleCommands, SystemInputQueue, parse_command_line


class StubSupervisor:
    def __init__(self):
        self.stopped = False

    def stop(self):
        self.stopped = True


@pytest.mark.parametrize("line, expected", [
    ("say hello world\n", ("say", "hello world")),
    ("  list  \n", ("list", "")),
    ("op   Steve ", ("op", "Steve")),
    ("\n", None),
    ("   ", None),
])
def test_parse_command_line(line, expected):
    assert parse_command_line(line) == expected


def test_input_queue_forwards_server_commands():
    consumed = []

    def local_handler(command, args):
        if command.startswith("!"):
            consumed.append((command, args))
            return True
        return False

    commands = SystemInputQueue(io.StringIO("say hi there\n\n!status now\nstop\n"), local_handler)
    commands.start()

    assert commands.closed.wait(5)
    assert commands.get_nowait() == ("say", "hi there")
    assert commands.get_nowait() == ("stop", "")
    assert commands.empty()
    assert consumed == [("!status", ["now"])]


def test_non_wrapper_commands_are_not_consumed():
    console = ConsoleCommands(StubSupervisor())
    assert console("say", ["hi"]) is False


def test_unknown_wrapper_command_is_consumed(capsys):
    console = ConsoleCommands(StubSupervisor())

    assert console("!frobnicate", []) is True
    assert "Unknown wrapper command" in capsys.readouterr().out


def test_exit_stops_the_supervisor_off_the_console_thread():
    supervisor = StubSupervisor()
    console = ConsoleCommands(supervisor)

    assert console("!exit", []) is True
    for thread in threading.enumerate():
        if thread.name == "ConsoleStopThread":
            thread.join(5)
    assert supervisor.stopped


def test_help_lists_wrapper_commands(capsys):
    ConsoleCommands(StubSupervisor())("!help", [])
    out = capsys.readouterr().out
    assert "!status" in out
    assert "!exit" in out


def test_set_changes_a_modifiable_setting(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(config, "OVERRIDES_JSON_PATH", tmp_path / "overrides.json")
    monkeypatch.setattr(config, "LOG_HISTORY_COUNT", config.LOG_HISTORY_COUNT)

    ConsoleCommands(StubSupervisor())("!set", ["log_history_count", "25"])

    assert config.LOG_HISTORY_COUNT == 25
    assert "LOG_HISTORY_COUNT is now 25" in capsys.readouterr().out
    assert (tmp_path / "overrides.json").exists()


def test_set_refuses_fixed_settings(capsys, caplog):
    caplog.set_level(logging.WARNING)
    original = config.JAVA_EXECUTABLE

    ConsoleCommands(StubSupervisor())("!set", ["JAVA_EXECUTABLE", "/bin/false"])

    assert config.JAVA_EXECUTABLE == original
    assert "Could not set JAVA_EXECUTABLE" in capsys.readouterr().out
