"""
Exceptions raised by the shard store, and the CLI error log.

Expected outcomes (a missing shard, a refused rename) are return values.
Exceptions are for shards that cannot be opened or upgraded.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ERROR_LOG_FILENAME = "shardcms-errors.log"


class ShardCMSError(Exception):
    """Base class for storage errors."""


class SchemaError(ShardCMSError):
    """A shard schema could not be created or upgraded."""


class ShardOpenError(ShardCMSError):
    """A shard database could not be opened."""

    def __init__(self, path: Path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


def error_log_path(data_dir: Optional[Path] = None) -> Path:
    """The error log lives in the data directory, or ~/.shardcms without one."""
    if data_dir is None:
        env = os.environ.get("SHARDCMS_DATA_DIR")
        data_dir = Path(env) if env else Path.home() / ".shardcms"
    return Path(data_dir) / ERROR_LOG_FILENAME


def log_exception(exc: BaseException, context: str = "", data_dir: Optional[Path] = None) -> Path:
    """
    Append the full traceback of ``exc`` to the error log.

    The CLI prints a one-line message and points the user here. Failing to
    write the log never raises.

    Returns:
        Path of the error log
    """
    path = error_log_path(data_dir)
    header = datetime.now(timezone.utc).isoformat(timespec="seconds")
    if context:
        header += f" {context}"
    entry = "\n".join([
        "-" * 60,
        header,
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip(),
        "",
    ])
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError:
        pass  # The caller still reports the error on stderr
    return path
