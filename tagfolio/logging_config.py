"""
Logging configuration for tagfolio.

The CLI is quiet by default; --verbose (or TAGFOLIO_VERBOSE=1) turns on
debug output. Every library also keeps a persistent operations log.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path

OPS_LOG_FILENAME = "tagfolio-ops.log"


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging to suppress verbose output.

    Args:
        quiet: If True, only warnings and errors reach stderr.
    """
    if quiet:
        warnings.filterwarnings("ignore")
        logging.getLogger("tagfolio").setLevel(logging.WARNING)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    logging.getLogger("tagfolio").setLevel(logging.DEBUG)


def configure_ops_log(root):
    """Configure a persistent operations log for a library.

    Writes to {root}/tagfolio-ops.log using a rotating file handler
    (1MB max, 3 backups). Active regardless of --verbose.
    Returns the handler so it can be removed on close().
    """
    log_path = Path(root) / OPS_LOG_FILENAME
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    tagfolio_logger = logging.getLogger("tagfolio")
    tagfolio_logger.addHandler(handler)
    # Let INFO through to the ops log even in quiet mode
    if tagfolio_logger.level == logging.NOTSET or tagfolio_logger.level > logging.INFO:
        tagfolio_logger.setLevel(logging.INFO)

    return handler
