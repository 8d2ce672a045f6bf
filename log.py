"""
log.py
Logging setup shared by the CLI and library modules.
"""

import logging
import sys

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(logging.Formatter(FORMAT))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def setup_logging(level: str = "INFO"):
    """
    Attach a single stderr handler to the root logger. Safe to call twice.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if _handler not in root.handlers:
        root.addHandler(_handler)
