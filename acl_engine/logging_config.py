"""
Logging configuration.
"""
import logging
import sys


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEBUG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def setup_logging(level: int = logging.WARNING):
    """Configure application logging on stderr, leaving stdout for the report."""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Repeated calls replace the handler instead of stacking another
    for handler in list(logger.handlers):
        if getattr(handler, "_am3k", False):
            logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        DEBUG_FORMAT if level <= logging.DEBUG else LOG_FORMAT
    ))
    console_handler._am3k = True
    logger.addHandler(console_handler)


def level_from_flags(verbose: bool = False, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING
