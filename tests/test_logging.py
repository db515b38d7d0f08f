import logging

import pytest

from covenant.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo configuration changes made by a test"""
    names = ["covenant", "covenant.pipeline", "covenant.module", "covenant.engines",
             "werkzeug", "uvicorn.access"]
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_root_level = root.level
    original_levels = {name: logging.getLogger(name).level for name in names}

    yield

    root.handlers[:] = original_handlers
    root.setLevel(original_root_level)
    for name, level in original_levels.items():
        logging.getLogger(name).setLevel(level)


class TestConfigureLogging:
    def test_default_level(self, monkeypatch):
        monkeypatch.delenv("COVENANT_LOG_LEVEL", raising=False)

        configure_logging()

        assert logging.getLogger().level == logging.INFO
        assert logging.getLogger("covenant.pipeline").level == logging.INFO
        assert logging.getLogger("covenant.engines").level == logging.WARNING

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("COVENANT_LOG_LEVEL", "ERROR")

        configure_logging()

        assert logging.getLogger().level == logging.ERROR

    def test_debug(self):
        configure_logging("debug")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("covenant").level == logging.DEBUG

    def test_server_loggers_are_quieted(self):
        configure_logging("DEBUG")

        assert logging.getLogger("werkzeug").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("chatty")

        assert logging.getLogger().level == logging.INFO

    def test_custom_format(self):
        configure_logging(format_string="%(levelname)s|%(message)s")

        assert logging.getLogger().handlers[0].formatter._fmt == "%(levelname)s|%(message)s"
