"""
Logging setup for shardcms.

Modules only create loggers under the ``shardcms`` namespace. Handlers are
attached here, by the CLI or by an application embedding the store.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

PACKAGE_LOGGER = "shardcms"

OPS_LOG_FILENAME = "shardcms-ops.log"
OPS_LOG_MAX_BYTES = 1_000_000
OPS_LOG_BACKUPS = 3

_CONSOLE_FORMAT = logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", datefmt="%H:%M:%S")
_FILE_FORMAT = logging.Formatter("%(asctime)s %(levelname)s [%(process)d] %(name)s %(message)s")


def _stderr_handler(logger: logging.Logger):
    for h in logger.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr:
            return h
    return None


def configure_quiet_mode(quiet: bool = True):
    """
    Set the package logger to warnings only (quiet) or informational output.

    Python warnings raised by sqlite3 or typer are muted in quiet mode.
    """
    if quiet:
        warnings.simplefilter("ignore")
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.WARNING if quiet else logging.INFO)


def enable_debug_mode():
    """Send debug output from every shardcms module to stderr."""
    warnings.simplefilter("default")

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.setLevel(logging.DEBUG)

    handler = _stderr_handler(pkg_logger)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_CONSOLE_FORMAT)
        pkg_logger.addHandler(handler)
    handler.setLevel(logging.DEBUG)


def configure_ops_log(data_dir: Union[str, Path]) -> RotatingFileHandler:
    """
    Record store operations (saves, renames, deletes, skipped shards) in
    ``<data_dir>/shardcms-ops.log``.

    The file rotates at 1 MB with three backups. The returned handler must
    be removed by the caller when the store is closed.
    """
    handler = RotatingFileHandler(
        Path(data_dir) / OPS_LOG_FILENAME,
        maxBytes=OPS_LOG_MAX_BYTES,
        backupCount=OPS_LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(_FILE_FORMAT)

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    pkg_logger.addHandler(handler)
    # Quiet mode raises the package level; INFO records must still reach the file
    if pkg_logger.getEffectiveLevel() > logging.INFO:
        pkg_logger.setLevel(logging.INFO)
    return handler
