# ABOUTME: Logging configuration for the shelfmark CLI.
# ABOUTME: Installs a rich console handler on the package logger; library code only calls getLogger.

import logging

from rich.console import Console
from rich.logging import RichHandler

_PACKAGE_LOGGER = "shelfmark"


def setup_logging(verbose: bool = False, *, console: Console | None = None) -> logging.Logger:
    """Configure the shelfmark logger for command-line use.

    Args:
        verbose: Show DEBUG messages instead of WARNING and above.
        console: Console to render log lines on; defaults to stderr.

    Returns:
        The package logger.
    """
    level = logging.DEBUG if verbose else logging.WARNING

    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=verbose,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setLevel(level)
    logger.addHandler(handler)
    return logger
