import logging
import threading

from src.local.wrapper.readiness import ReadinessDetector, ReadinessState

MARKER = "Done ("


def _ready_logs(caplog):
    return [r for r in caplog.records if r.getMessage() == "Server finished loading."]


def test_lines_without_marker_keep_loading(sink):
    detector = ReadinessDetector(sink, MARKER)
    for line in ["Starting minecraft server", "Preparing level \"world\"", "Preparing spawn area: 40%"]:
        detector.handle_line("stderr", line)

    assert detector.state is ReadinessState.LOADING
    assert sink.texts() == ["Starting minecraft server", "Preparing level \"world\"", "Preparing spawn area: 40%"]


def test_first_marker_line_makes_ready_once(sink, caplog):
    caplog.set_level(logging.INFO)
    detector = ReadinessDetector(sink, MARKER)

    detector.handle_line("stdout", "Loading")
    detector.handle_line("stderr", "Done (1.23s)! For help, type \"help\"")
    detector.handle_line("stdout", "Done (again)")
    detector.process_exited(0)

    assert detector.state is ReadinessState.READY
    assert len(_ready_logs(caplog)) == 1
    assert len(sink.lines) == 3


def test_exit_before_marker_fails(sink):
    detector = ReadinessDetector(sink, MARKER)
    detector.handle_line("stdout", "Loading")
    detector.process_exited(0)
    detector.handle_line("stdout", "Done (too late)")

    assert detector.state is ReadinessState.FAILED
    assert detector.wait_until_loaded() is ReadinessState.FAILED


def test_wait_until_loaded_is_released_by_another_thread(sink):
    detector = ReadinessDetector(sink, MARKER)
    result = []
    waiter = threading.Thread(target=lambda: result.append(detector.wait_until_loaded()))
    waiter.start()

    detector.handle_line("stderr", "Done (0.5s)!")
    waiter.join(timeout=5)

    assert not waiter.is_alive()
    assert result == [ReadinessState.READY]


def test_wait_with_timeout_returns_loading(sink):
    detector = ReadinessDetector(sink, MARKER)
    assert detector.wait_until_loaded(timeout=0.05) is ReadinessState.LOADING


def test_concurrent_relays_transition_once(sink, caplog):
    caplog.set_level(logging.INFO)
    detector = ReadinessDetector(sink, MARKER)
    barrier = threading.Barrier(2)

    def feed(tag):
        barrier.wait()
        for i in range(200):
            detector.handle_line(tag, f"Done ({i})")

    threads = [threading.Thread(target=feed, args=(tag,)) for tag in ("stdout", "stderr")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert detector.state is ReadinessState.READY
    assert len(_ready_logs(caplog)) == 1
    assert len(sink.lines) == 400
