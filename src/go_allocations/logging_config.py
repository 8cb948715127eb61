"""
Logging for go-allocations.

Everything is logged under the ``go_allocations`` logger. The terminal gets a
rich handler on stderr (stdout carries tables, trees and JSON) filtered by
the configured verbosity. A log file, when requested, always records DEBUG,
so it holds every ``go`` command line and exit status even when the
terminal only shows warnings.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "go_allocations"

VERBOSITY_LEVELS = {
    "quiet": logging.ERROR,
    "normal": logging.WARNING,
    "verbose": logging.DEBUG,
}

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Marks handlers installed here so a second setup replaces them
_OWNED = "_go_allocations_handler"


def setup_logging(verbosity: str = "normal", log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach the terminal handler (and optionally a file handler).

    Safe to call more than once; earlier handlers are replaced.

    Args:
        verbosity: ``quiet``, ``normal`` or ``verbose``
        log_file: Append plain-text DEBUG logs to this file

    Returns:
        The ``go_allocations`` logger
    """
    terminal_level = VERBOSITY_LEVELS.get(verbosity, logging.WARNING)
    verbose = terminal_level <= logging.DEBUG

    logger = logging.getLogger(ROOT_LOGGER)
    for handler in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(handler)
        handler.close()

    terminal = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        # Messages carry go output and source text, never markup
        markup=False,
        show_time=verbose,
        show_path=verbose,
    )
    terminal.setLevel(terminal_level)
    _install(logger, terminal)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        file_handler.setLevel(logging.DEBUG)
        _install(logger, file_handler)

    logger.setLevel(logging.DEBUG if log_file else terminal_level)
    return logger


def _install(logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _OWNED, True)
    logger.addHandler(handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for a module, always inside the ``go_allocations`` namespace."""
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
