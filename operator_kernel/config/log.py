"""Console logging for the operator."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "operator_kernel"

console = Console(stderr=True)


def setup_logging(level: str = "INFO", rich_tracebacks: bool = True) -> logging.Logger:
    """
    Route every `operator_kernel.*` logger to a Rich console handler.

    Safe to call more than once: previously installed handlers are replaced.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.handlers.clear()

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=rich_tracebacks,
        show_time=True,
        show_path=log_level <= logging.DEBUG,
    )
    rich_handler.setLevel(log_level)
    logger.addHandler(rich_handler)
    logger.propagate = False
    return logger
