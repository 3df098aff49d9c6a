"""Package-wide logger, silent until a caller supplies one."""

from __future__ import annotations

import logging
from dataclasses import dataclass


def _make_disabled_logger() -> logging.Logger:
    logger = logging.Logger("neutrino.disabled")
    logger.disabled = True
    logger.propagate = False
    logger.addHandler(logging.NullHandler())
    return logger


_DISABLED = _make_disabled_logger()


@dataclass
class _LogState:
    """Holds the logger the package currently writes to."""

    logger: logging.Logger


_state = _LogState(logger=_DISABLED)


def disable_log() -> None:
    """Turn off all log output from the package."""
    _state.logger = _DISABLED


def use_logger(logger: logging.Logger) -> None:
    """Send the package's log output to ``logger``."""
    if logger is None:
        raise TypeError("logger must not be None")
    _state.logger = logger


def get_logger() -> logging.Logger:
    """Return the logger the package currently writes to."""
    return _state.logger