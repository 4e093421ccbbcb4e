import logging

from src.local.database import LogDBManager
from src.log.handler import SQLiteHandler
from src.log.setup import MainFormatter
from src.log.sink import STDERR, STDOUT, ProcessLogSink


def test_sink_logs_stdout_as_info_and_stderr_as_warning(caplog):
    caplog.set_level(logging.DEBUG)
    sink = ProcessLogSink()

    sink.write(STDOUT, "[Server thread/INFO]: Preparing level")
    sink.write(STDERR, "Exception in thread main")

    records = [(r.name, r.levelno, r.getMessage()) for r in caplog.records if r.name.startswith("proc.")]
    assert records == [
        ("proc.stdout", logging.INFO, "[Server thread/INFO]: Preparing level"),
        ("proc.stderr", logging.WARNING, "Exception in thread main"),
    ]


def test_formatter_prints_server_output_verbatim():
    formatter = MainFormatter()
    server = logging.LogRecord("proc.stdout", logging.INFO, __file__, 1, "raw server line", None, None)
    wrapper = logging.LogRecord("src.local.wrapper", logging.INFO, __file__, 1, "wrapper line", None, None)

    assert formatter.format(server) == "raw server line"
    assert formatter.format(wrapper).endswith("- INFO     - [src.local.wrapper] - wrapper line")


def test_sqlite_handler_persists_server_and_wrapper_records(tmp_path):
    db_path = tmp_path / "logs.db"
    handler = SQLiteHandler(db_path, flush_interval=60, buffer_size=1000)
    logger = logging.getLogger("test_log.persist")
    logger.propagate = False
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    server_logger = logging.getLogger("proc.stderr")
    server_logger.addHandler(handler)
    try:
        logger.info("wrapper started")
        server_logger.warning("server complained")
        handler.flush()

        entries = LogDBManager(db_path).fetch_last_entries(10)
    finally:
        logger.removeHandler(handler)
        server_logger.removeHandler(handler)
        handler.close()

    assert [entry.level for entry in entries] == ["INFO", "WARNING"]
    assert entries[0].module == "test_log"
    assert entries[0].stream is None
    assert entries[1].module == "server"
    assert entries[1].stream == "stderr"
    assert entries[1].message.endswith("[server] - server complained")


def test_fetch_last_entries_returns_newest_in_order(tmp_path):
    db = LogDBManager(tmp_path / "logs.db")
    db.initialize_database()
    db.insert_log_batch([
        {"timestamp": float(i), "level": "INFO", "module": "m", "funcName": "f", "lineno": i, "message": f"line {i}"}
        for i in range(5)
    ])

    entries = db.fetch_last_entries(2)

    assert [entry.message.rsplit(" - ", 1)[-1] for entry in entries] == ["line 3", "line 4"]


def test_close_writes_buffered_records(tmp_path):
    db_path = tmp_path / "logs.db"
    handler = SQLiteHandler(db_path, flush_interval=60, buffer_size=1000)
    record = logging.LogRecord("src.main", logging.ERROR, __file__, 1, "last words", None, None)

    handler.emit(record)
    handler.close()

    assert LogDBManager(db_path).fetch_last_entries(1)[0].message.endswith("last words")
