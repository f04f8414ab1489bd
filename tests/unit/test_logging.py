"""
Tests for the logging wrapper.
"""

import logging
from types import SimpleNamespace

import pytest

from hypotest_sim.config.settings import LoggingConfig, LogLevel
from hypotest_sim.utils.logging import SimLogger, apply_logging_config, get_logger, log_performance, setup_logging


class _ListHandler(logging.Handler):

    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def captured():
    logger = get_logger("hypotest_sim.tests.logging")
    logger.isEnabledFor(logging.INFO)  # force configuration before attaching
    handler = _ListHandler()
    logger.logger.addHandler(handler)
    logger.logger.setLevel(logging.DEBUG)
    yield logger, handler
    logger.logger.removeHandler(handler)


@pytest.mark.unit
class TestSimLogger:

    def test_cached_instances(self):
        assert get_logger("hypotest_sim.x") is get_logger("hypotest_sim.x")

    def test_context_appended(self, captured):
        logger, handler = captured
        logger.info("Chunk finished", sample_size=25, degenerate=0)
        assert handler.messages[-1] == "Chunk finished | sample_size=25 | degenerate=0"

    def test_plain_message(self, captured):
        logger, handler = captured
        logger.warning("plain")
        assert handler.messages[-1] == "plain"

    def test_log_performance(self):

        @log_performance
        def work(x):
            return x * 2

        assert work(21) == 42
        assert work.__name__ == "work"

    def test_log_performance_reraises(self):

        @log_performance
        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            fail()


@pytest.mark.unit
class TestLevels:

    def test_default_level_is_info(self, default_config):
        logger = get_logger("hypotest_sim.tests.levels")
        assert logger.isEnabledFor(logging.INFO)
        assert not logger.isEnabledFor(logging.DEBUG)

    def test_enum_level_resolved(self):
        settings = LoggingConfig.model_construct(level=LogLevel.WARNING, console_logging=False)
        logger = SimLogger("hypotest_sim.tests.enum_level", config=SimpleNamespace(logging=settings))

        assert logger.isEnabledFor(logging.WARNING)
        assert logger.logger.level == logging.WARNING

    def test_setup_logging_reconfigures(self, default_config):
        logger = get_logger("hypotest_sim.tests.levels")
        assert logger.isEnabledFor(logging.INFO)

        setup_logging(level="error")
        assert default_config.logging.level == "ERROR"
        assert not logger.isEnabledFor(logging.WARNING)

    def test_apply_logging_config(self, default_config):
        logger = get_logger("hypotest_sim.tests.levels")
        settings = LoggingConfig(level="DEBUG", console_logging=False)

        apply_logging_config(settings)
        assert logger.isEnabledFor(logging.DEBUG)
        assert logger.logger.handlers == []
        assert default_config.logging is not settings
