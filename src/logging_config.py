import logging
import os
import sys
from logging import Handler
from typing import List

from tqdm import tqdm

# Every module in the package logs below this name so that a single call to
# setup_logger() configures the whole translator.
LOGGER_NAME = "properties_translator"


class TqdmLoggingHandler(Handler):
    """
    Logging handler that writes through tqdm.write so log lines do not
    break the per-entry progress bar.
    """
    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=sys.stderr)
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


def get_logger(module_name: str) -> logging.Logger:
    """Return the child logger for a module, e.g. ``properties_translator.orchestrator``."""
    short_name = module_name.rsplit('.', 1)[-1]
    return logging.getLogger(f"{LOGGER_NAME}.{short_name}")


def setup_logger(log_level_str: str, log_file_path: str, log_to_console: bool) -> logging.Logger:
    """
    Set up the package logger.

    Configures the ``properties_translator`` logger with a UTF-8 file handler
    and, optionally, a tqdm-aware console handler. Child loggers obtained via
    :func:`get_logger` propagate into it.

    Args:
        log_level_str: The logging level as a string (e.g., 'INFO', 'DEBUG').
        log_file_path: The path to the log file. Empty disables file logging.
        log_to_console: Whether to also log to stderr.

    Returns:
        The configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level_str.upper(), logging.INFO))
    logger.propagate = False

    # Repeated calls replace the handlers instead of stacking them.
    for old_handler in list(logger.handlers):
        logger.removeHandler(old_handler)
        old_handler.close()

    handlers: List[Handler] = []
    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file_path, encoding='utf-8'))
    if log_to_console:
        handlers.append(TqdmLoggingHandler())

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
