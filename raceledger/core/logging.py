# raceledger/core/logging.py
"""Logging setup."""
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the whole application."""
    root = logging.getLogger()
    if any(getattr(h, "_raceledger", False) for h in root.handlers):
        root.setLevel(level.upper())
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._raceledger = True
    root.addHandler(handler)
    root.setLevel(level.upper())

    # SQLAlchemy echo is controlled by settings.debug
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
