from __future__ import annotations

import logging
import sys

import pytest

from regsync.utils.logger import LIBRARY_LOGGERS, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_console_logs_go_to_stderr() -> None:
    setup_logging("DEBUG")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert [handler.stream for handler in root.handlers] == [sys.stderr]
    for name in LIBRARY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_log_file(tmp_path) -> None:
    log_file = tmp_path / "regsync.log"
    setup_logging("INFO", str(log_file))

    logging.getLogger("regsync.test").info("pushed busybox:1.32")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "regsync.test - INFO - pushed busybox:1.32" in log_file.read_text()
