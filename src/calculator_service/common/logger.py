"""Shared logger for the calculator service."""
import logging
import sys

from calculator_service.common.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(processName)s | %(name)s | %(message)s"


def get_logger(name: str = "calculator_service", level: str = settings.log_level) -> logging.Logger:
    """
    Return a logger writing to stderr with the service format.

    Calling it twice with the same name does not add a second handler.

    :param str name: Logger name
    :param str level: Logging level name (e.g. "INFO")

    :return: Configured logger
    :rtype: logging.Logger
    """
    log = logging.getLogger(name)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    log.setLevel(level)
    return log


logger = get_logger()
