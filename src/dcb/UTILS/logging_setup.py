"""
Logging configuration for the command line.
"""
import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False) -> logging.Logger:
    """
    Routes the package's log records to stderr through Rich.

    :param verbose: Log DEBUG records and show timestamps.
    :return: The package logger.
    """
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        show_time=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("dcb")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
