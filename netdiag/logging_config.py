"""Logging configuration for NetDiag."""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_log_level(name: str | None) -> int | None:
    """Map a level name to its logging constant, or None if unknown."""
    if not name:
        return None
    return _LEVELS.get(name.strip().upper())


def configure_logging(level: str | None = None) -> int:
    """Configure application-wide logging on stderr.

    The level comes from the ``level`` argument when given (the --log-level
    flag), otherwise from NETDIAG_LOG_LEVEL, otherwise INFO. Unknown names
    fall back to INFO and are reported once configuration is done.

    Examples:
        $ python -m netdiag
        $ NETDIAG_LOG_LEVEL=DEBUG python -m netdiag
        $ python -m netdiag --headless ping --log-level WARNING

    Returns:
        The effective logging level
    """
    requested = level if level is not None else os.environ.get("NETDIAG_LOG_LEVEL", "INFO")
    log_level = resolve_log_level(requested)
    unknown = log_level is None
    if unknown:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
        force=True,  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    if unknown:
        logger.warning("Unknown log level %r, using INFO", requested)
    logger.debug("Logging configured: level=%s", logging.getLevelName(log_level))
    return log_level
