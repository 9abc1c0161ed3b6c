# File: tests/test_logger.py
import logging
from logging.handlers import RotatingFileHandler

import pytest

from garderie_watch.logger import LOGGER_NAME, configure, get_logger


@pytest.fixture(autouse=True)
def restore_project_logger():
    root = logging.getLogger(LOGGER_NAME)
    saved = (list(root.handlers), root.level, root.propagate)
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    handlers, level, propagate = saved
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    root.propagate = propagate


def test_component_loggers_are_children_of_the_project_logger():
    assert get_logger().name == "GarderieWatch"
    assert get_logger("store").name == "GarderieWatch.store"
    assert get_logger("store").parent is get_logger()


def test_configure_writes_component_records_to_the_log_file(tmp_path):
    log_file = tmp_path / "crawl.log"
    root = configure(level="DEBUG", log_file=log_file)

    assert root.propagate is False
    assert sum(isinstance(h, RotatingFileHandler) for h in root.handlers) == 1

    get_logger("orchestrator").debug("Page %d fetched", 3)
    for handler in root.handlers:
        handler.flush()
    assert "GarderieWatch.orchestrator | Page 3 fetched" in log_file.read_text(encoding="utf-8")


def test_reconfigure_replaces_handlers(tmp_path):
    configure(log_file=tmp_path / "a.log")
    root = configure()
    assert len(root.handlers) == 1
    assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)
