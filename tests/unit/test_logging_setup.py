import logging

import pytest
from rich.logging import RichHandler

from cinerank.logging_setup import LOG_LEVEL_ENV, LogLevel, configure_logging, resolve_level


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_explicit_enum(self):
        assert resolve_level(LogLevel.DEBUG) == logging.DEBUG

    def test_explicit_name_is_case_insensitive(self):
        assert resolve_level("warning") == logging.WARNING

    def test_environment(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "error")
        assert resolve_level() == logging.ERROR

    def test_unknown_falls_back_to_info(self, monkeypatch):
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
        assert resolve_level("chatty") == logging.INFO
        assert resolve_level() == logging.INFO


def test_configure_logging_installs_one_handler(restore_root_logger):
    configure_logging(LogLevel.WARNING)
    configure_logging(LogLevel.DEBUG)

    rich_handlers = [h for h in restore_root_logger.handlers if isinstance(h, RichHandler)]
    assert len(rich_handlers) == 1
    assert restore_root_logger.level == logging.DEBUG
