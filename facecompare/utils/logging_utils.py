"""
Logging setup for the comparison service.
Configures one stream handler on the package root logger.
"""
import logging

from .. import config

_PACKAGE_LOGGER = "facecompare"
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = None) -> logging.Logger:
    """
    Configure the package root logger once and return it.

    Args:
        level: log level name; defaults to config.LOG_LEVEL

    Returns:
        logging.Logger: the configured package logger
    """
    root = logging.getLogger(_PACKAGE_LOGGER)
    root.setLevel(getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO))

    # Avoid duplicate handlers on re-import
    if root.handlers:
        return root

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    root.addHandler(handler)
    return root


def get_logger(name: str = None) -> logging.Logger:
    """Return a child logger of the package logger, configuring it on first use."""
    setup_logging()
    if not name or name == _PACKAGE_LOGGER or name.startswith(_PACKAGE_LOGGER + "."):
        return logging.getLogger(name or _PACKAGE_LOGGER)
    return logging.getLogger(f"{_PACKAGE_LOGGER}.{name}")
