import logging

import pytest

from genbatch.infrastructure.monitoring.logger_setup import RunLogBuffer, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message, level=logging.INFO):
    return logging.LogRecord("genbatch.test", level, __file__, 1, message, None, None)


def test_buffer_keeps_most_recent_lines():
    buffer = RunLogBuffer(capacity=3)
    for index in range(5):
        buffer.handle(make_record(f"line {index}"))

    assert [entry["message"] for entry in buffer.recent(10)] == ["line 2", "line 3", "line 4"]
    assert [entry["message"] for entry in buffer.recent(2)] == ["line 3", "line 4"]


def test_buffer_ignores_records_below_level():
    buffer = RunLogBuffer(level=logging.INFO)
    buffer.handle(make_record("noise", logging.DEBUG))
    assert buffer.recent() == []


def test_buffer_clear():
    buffer = RunLogBuffer()
    buffer.handle(make_record("one"))
    buffer.clear()
    assert buffer.recent() == []


def test_setup_logging_attaches_handlers(restore_root_logger, tmp_path):
    buffer = RunLogBuffer()
    log_file = tmp_path / "run.log"

    setup_logging(log_level=logging.DEBUG, log_file=str(log_file), log_buffer=buffer)
    logging.getLogger("genbatch.test").info("hello from the test")

    root = logging.getLogger()
    assert buffer in root.handlers
    assert any(isinstance(handler, logging.FileHandler) for handler in root.handlers)
    assert buffer.recent()[-1]["message"] == "hello from the test"
    assert logging.getLogger("httpx").level == logging.WARNING
    for handler in root.handlers:
        handler.flush()
    assert "hello from the test" in log_file.read_text()
