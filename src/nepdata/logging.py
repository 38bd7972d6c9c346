"""Logging helpers shared by every nepdata module.

Each component logs through its own named logger so that output reads
``[IO] 120 frames read from train.xyz``.
"""

from __future__ import annotations

import logging


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return a logger with the package's console format.

    The handler is installed only once per logger, so calling this
    repeatedly with the same *name* is harmless.

    Args:
        name: Logger name, shown in brackets before each message.
        level: Initial logging level.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(f"nepdata.{name}")

    if not logger.handlers:
        logger.setLevel(level)
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(f"[{name}] %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


io_logger = setup_logger("IO")
select_logger = setup_logger("Subsample")
accuracy_logger = setup_logger("Accuracy")
cli_logger = setup_logger("CLI")

_LOGGERS = (io_logger, select_logger, accuracy_logger, cli_logger)


def set_log_level(level: int | str) -> None:
    """Set the level of every nepdata logger and its handlers.

    Args:
        level: A :mod:`logging` level constant or its name, e.g.
            ``"DEBUG"``.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level: {level!r}")
    for logger in _LOGGERS:
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
