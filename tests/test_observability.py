import json
import logging
from logging.handlers import BufferingHandler, RotatingFileHandler

import pytest

from gitritual import observability as obs
from gitritual.observability import (
    LOGGER_NAME,
    SUCCESS,
    _get_log_file_path,
    _get_log_level,
    configure_logging,
    log_action,
    log_debug,
    log_error,
    log_info,
    log_success,
    log_warning,
    timeit,
)


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset logger state between tests."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    obs._logger_initialized = False
    yield
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    obs._logger_initialized = False


def attach_buffer() -> BufferingHandler:
    """Capture records of the (already built) gitritual logger.

    The logger does not propagate, so pytest's caplog never sees it.
    """
    handler = BufferingHandler(capacity=1000)
    handler.setLevel(logging.DEBUG)
    logging.getLogger(LOGGER_NAME).addHandler(handler)
    return handler


@pytest.fixture
def records():
    configure_logging(level="DEBUG", disable_file=True)
    return attach_buffer().buffer


def test_log_action_emits_json(records):
    log_action("cherry_pick", outcome="ok", duration_ms=123, step="Cherry-Pick", branch="release-a")
    record = records[-1]
    assert record.levelno == logging.DEBUG
    data = json.loads(record.getMessage())
    assert data["action"] == "cherry_pick"
    assert data["outcome"] == "ok"
    assert data["duration_ms"] == 123
    assert data["step"] == "Cherry-Pick"
    assert data["branch"] == "release-a"


def test_timeit_success_logs(records):
    with timeit("test.block", step="Push", branch="b1"):
        pass
    data = json.loads(records[-1].getMessage())
    assert data["action"] == "test.block"
    assert data["outcome"] == "ok"
    assert data["step"] == "Push"
    assert data["branch"] == "b1"
    assert isinstance(data["duration_ms"], (int, float))


def test_timeit_error_logs(records):
    with pytest.raises(RuntimeError):
        with timeit("test.err", branch="b2"):
            raise RuntimeError("boom")
    data = json.loads(records[-1].getMessage())
    assert data["action"] == "test.err"
    assert data["outcome"] == "error"


def test_timeit_collects_result_fields(records):
    with timeit("test.fields", items=1) as info:
        info["items"] = 3
        info["succeeded"] = True
    data = json.loads(records[-1].getMessage())
    assert data["items"] == 3
    assert data["succeeded"] is True


def test_success_level_sits_between_info_and_warning(records):
    log_success("Pushed release-a")
    assert records[-1].levelno == SUCCESS
    assert records[-1].levelname == "SUCCESS"
    assert logging.INFO < SUCCESS < logging.WARNING


def test_messages_carry_structured_fields(records):
    log_info("Processing branch", branch="release-a", position=1)
    msg = records[-1].getMessage()
    assert msg.startswith("Processing branch ")
    assert '"branch":"release-a"' in msg
    assert '"position":1' in msg


def test_message_without_fields_is_plain(records):
    log_warning("No branches selected.")
    log_error("release-b: rejected")
    assert records[-2].getMessage() == "No branches selected."
    assert records[-2].levelno == logging.WARNING
    assert records[-1].levelno == logging.ERROR


def test_log_debug_not_emitted_at_info():
    configure_logging(level="INFO", console_level="INFO", disable_file=True)
    buffer = attach_buffer().buffer
    log_debug("should not appear")
    log_action("hidden")
    assert [r for r in buffer if r.levelno == logging.DEBUG] == []


def test_console_level_is_separate_from_file_level(tmp_path):
    logger = configure_logging(level="DEBUG", console_level="WARNING", log_dir=str(tmp_path), disable_file=False)
    levels = {type(h): h.level for h in logger.handlers}
    assert levels[RotatingFileHandler] == logging.DEBUG
    assert levels[logging.StreamHandler] == logging.WARNING


def test_file_logging_writes_session_file(tmp_path):
    logger = configure_logging(level="INFO", log_dir=str(tmp_path / "logs"), disable_file=False)
    log_info("written to file")
    for handler in logger.handlers:
        handler.flush()
    files = list((tmp_path / "logs").glob("gitritual_*.log"))
    assert len(files) == 1
    assert "written to file" in files[0].read_text()


def test_lazy_logger_uses_environment(monkeypatch):
    monkeypatch.setenv("GITRITUAL_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("GITRITUAL_LOG_DISABLE_FILE", "1")
    log_warning("first message initialises the logger")
    logger = logging.getLogger(LOGGER_NAME)
    assert obs._logger_initialized
    assert all(not isinstance(h, RotatingFileHandler) for h in logger.handlers)


def test_log_level_from_env(monkeypatch):
    monkeypatch.setenv("GITRITUAL_LOG_LEVEL", "DEBUG")
    assert _get_log_level() == logging.DEBUG
    monkeypatch.setenv("GITRITUAL_LOG_LEVEL", "warning")
    assert _get_log_level() == logging.WARNING


def test_invalid_log_level_falls_back(monkeypatch):
    monkeypatch.setenv("GITRITUAL_LOG_LEVEL", "INVALID_LEVEL")
    assert _get_log_level() == logging.INFO


def test_disable_file_logging(monkeypatch):
    monkeypatch.setenv("GITRITUAL_LOG_DISABLE_FILE", "1")
    assert _get_log_file_path() is None


def test_custom_log_dir(monkeypatch, tmp_path):
    monkeypatch.delenv("GITRITUAL_LOG_DISABLE_FILE", raising=False)
    custom_dir = tmp_path / "custom_logs"
    monkeypatch.setenv("GITRITUAL_LOG_DIR", str(custom_dir))
    path = _get_log_file_path()
    assert path is not None
    assert path.parent == custom_dir
    assert custom_dir.exists()
