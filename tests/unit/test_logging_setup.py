# ABOUTME: Unit tests for CLI logging configuration.
# ABOUTME: Checks levels, handler replacement and that records render on the given console.

import io
import logging

from rich.console import Console
from rich.logging import RichHandler

from shelfmark.logging_setup import setup_logging


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_default_level_is_warning(self) -> None:
        """Without --verbose only warnings and above are shown."""
        logger = setup_logging(console=Console(file=io.StringIO()))
        assert logger.name == "shelfmark"
        assert logger.level == logging.WARNING

    def test_verbose_enables_debug(self) -> None:
        """--verbose switches to DEBUG."""
        assert setup_logging(True, console=Console(file=io.StringIO())).level == logging.DEBUG

    def test_repeated_setup_keeps_one_handler(self) -> None:
        """Calling setup twice does not duplicate output."""
        setup_logging(console=Console(file=io.StringIO()))
        logger = setup_logging(console=Console(file=io.StringIO()))
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)

    def test_module_loggers_reach_console(self) -> None:
        """Messages from package modules are rendered on the console."""
        buffer = io.StringIO()
        setup_logging(console=Console(file=buffer, width=200))
        logging.getLogger("shelfmark.metadata.resilience").warning("OpenLibrary throttled")
        assert "OpenLibrary throttled" in buffer.getvalue()
