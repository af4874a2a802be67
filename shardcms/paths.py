"""
Data directory resolution.

The storage root is searched for across deployment layouts: explicit
environment overrides first, then conventional locations relative to the
working directory and the installed package. The first existing directory
wins. If none exists, ``<cwd>/data`` is created and used.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# Checked in order; the first non-empty value is a candidate
ENV_VARS = ("SHARDCMS_DATA_DIR", "CONTENT_DATA_DIR", "PORTFOLIO_DATA_DIR")

SYSTEM_DATA_DIR = Path("/var/lib/shardcms/data")


def candidate_dirs(
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> list[Path]:
    """Ordered list of directories that may hold the store."""
    environ = os.environ if environ is None else environ
    cwd = Path.cwd() if cwd is None else Path(cwd)

    candidates: list[Path] = []
    for name in ENV_VARS:
        value = environ.get(name, "").strip()
        if value:
            candidates.append(Path(value).expanduser())
            break

    candidates += [
        cwd / "data",
        cwd.parent / "data",
        cwd.parent.parent / "data",
        cwd / "standalone" / "data",
        Path(__file__).resolve().parent.parent / "data",
        SYSTEM_DATA_DIR,
    ]
    return candidates


def ensure_directory(path: Path) -> bool:
    """Create a directory if missing. Failures are logged, never raised."""
    try:
        path.mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        logger.warning("Failed to ensure directory %s: %s", path, e)
        return False


def resolve_data_dir(
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> Path:
    """
    Resolve the storage root directory.

    Never raises: when no candidate exists the fallback is returned even if
    it could not be created.
    """
    cwd = Path.cwd() if cwd is None else Path(cwd)
    candidates = candidate_dirs(environ, cwd)

    for candidate in candidates:
        try:
            if candidate.is_dir():
                logger.info("Using data directory: %s", candidate)
                return candidate
        except OSError as e:
            logger.warning("Failed to access data directory candidate %s: %s", candidate, e)

    fallback = cwd / "data"
    logger.warning(
        "Content data directory not found. Falling back to %s "
        "(directory will be created if missing)", fallback,
    )
    logger.warning("Checked directories: %s", ", ".join(str(c) for c in candidates))
    ensure_directory(fallback)
    return fallback
