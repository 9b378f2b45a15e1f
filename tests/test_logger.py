import logging

import pytest

from hotupdate.utils.logger import LOG_FORMAT, logger, logger_manager


@pytest.fixture
def restore_log_path():
    original = logger_manager.log_file_path
    yield
    logger_manager.change_log_path(original)


def _file_handlers():
    return [
        h
        for h in logging.getLogger().handlers
        if getattr(h, "_hotupdate_handler", False) and hasattr(h, "baseFilename")
    ]


def test_change_log_path_switches_file(tmp_path, restore_log_path):
    new_path = tmp_path / "logs" / "sync.log"

    assert logger_manager.change_log_path(str(new_path)) is True
    logger.info("切换后的日志")
    for handler in _file_handlers():
        handler.flush()

    handlers = _file_handlers()
    assert len(handlers) == 1
    assert handlers[0].baseFilename == str(new_path)
    assert "切换后的日志" in new_path.read_text(encoding="utf-8")
    assert handlers[0].formatter._fmt == LOG_FORMAT


def test_same_path_keeps_handlers(restore_log_path):
    before = list(logging.getLogger().handlers)
    assert logger_manager.change_log_path(logger_manager.log_file_path) is False
    assert logging.getLogger().handlers == before


def test_host_handlers_are_preserved(tmp_path, restore_log_path):
    host_handler = logging.NullHandler()
    root_logger = logging.getLogger()
    root_logger.addHandler(host_handler)
    try:
        logger_manager.change_log_path(str(tmp_path / "other.log"))
        assert host_handler in root_logger.handlers
    finally:
        root_logger.removeHandler(host_handler)
