import logging

import pytest

from src.logging_config import LOGGER_NAME


@pytest.fixture(autouse=True)
def quiet_translator_logger():
    """
    Keep the package logger out of test output unless a test attaches its own
    handler. setup_logger() sets propagate=False, so restore it for caplog.
    """
    logger = logging.getLogger(LOGGER_NAME)
    saved_handlers = list(logger.handlers)
    saved_propagate = logger.propagate
    logger.handlers.clear()
    logger.propagate = True
    yield
    logger.handlers[:] = saved_handlers
    logger.propagate = saved_propagate
