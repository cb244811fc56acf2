"""Logging setup shared by all bisac_tools modules."""
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_ENV = "BISAC_TOOLS_LOG_LEVEL"

_configured = False


def _configure_root() -> None:
    """Attach a single stderr handler to the root logger."""
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the root logger on first use."""
    _configure_root()
    return logging.getLogger(name)
