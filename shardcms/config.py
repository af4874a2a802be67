"""
Store configuration: ``shardcms.toml`` in the data directory.

    [store]
    version = 1
    created = "2026-01-01T00:00:00.000Z"

    [shards]
    journal_mode = "WAL"
    busy_timeout_ms = 5000
    default_lang = "ja"

The file is written with defaults the first time a store is opened.
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .types import DEFAULT_LANG, utc_now

# tomllib reads only; writing needs tomli_w
try:
    import tomli_w
except ImportError:
    tomli_w = None  # type: ignore


CONFIG_FILENAME = "shardcms.toml"
CONFIG_VERSION = 1

JOURNAL_MODES = ("WAL", "DELETE", "TRUNCATE", "PERSIST", "MEMORY", "OFF")


@dataclass
class ShardConfig:
    """Connection settings applied every time a shard is opened."""
    journal_mode: str = "WAL"
    busy_timeout_ms: int = 5000
    default_lang: str = DEFAULT_LANG

    @classmethod
    def from_section(cls, section: dict[str, Any], source: Path) -> "ShardConfig":
        mode = str(section.get("journal_mode", cls.journal_mode)).upper()
        if mode not in JOURNAL_MODES:
            raise ValueError(f"Unknown journal_mode {mode!r} in {source}")
        try:
            timeout = int(section.get("busy_timeout_ms", cls.busy_timeout_ms))
        except (TypeError, ValueError):
            raise ValueError(f"busy_timeout_ms must be an integer in {source}") from None
        return cls(
            journal_mode=mode,
            busy_timeout_ms=timeout,
            default_lang=str(section.get("default_lang", cls.default_lang)),
        )

    def to_section(self) -> dict[str, Any]:
        return {
            "journal_mode": self.journal_mode,
            "busy_timeout_ms": self.busy_timeout_ms,
            "default_lang": self.default_lang,
        }


@dataclass
class StoreConfig:
    """Configuration of one data directory, and the paths derived from it."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=utc_now)
    shards: ShardConfig = field(default_factory=ShardConfig)

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILENAME

    @property
    def contents_dir(self) -> Path:
        """Directory holding one database file per content item."""
        return self.path / "contents"

    @property
    def tag_catalog_path(self) -> Path:
        return self.path / "tag-catalog.json"


def load_config(store_path: Path) -> StoreConfig:
    """
    Read ``shardcms.toml`` from a data directory.

    Raises:
        FileNotFoundError: If the data directory has no config file
        ValueError: If the file is from a newer release or has bad values
    """
    source = store_path / CONFIG_FILENAME
    if not source.exists():
        raise FileNotFoundError(f"Config not found: {source}")

    with open(source, "rb") as f:
        data = tomllib.load(f)

    store_section = data.get("store", {})
    version = store_section.get("version", CONFIG_VERSION)
    if version > CONFIG_VERSION:
        raise ValueError(
            f"{source} has config version {version}, which is newer than supported ({CONFIG_VERSION})"
        )

    return StoreConfig(
        path=store_path,
        version=version,
        created=store_section.get("created", ""),
        shards=ShardConfig.from_section(data.get("shards", {}), source),
    )


def save_config(config: StoreConfig) -> None:
    """Write the config file, creating the data directory if needed."""
    if tomli_w is None:
        raise RuntimeError("Saving shardcms.toml requires tomli-w (pip install tomli-w)")

    config.path.mkdir(parents=True, exist_ok=True)
    document = {
        "store": {"version": config.version, "created": config.created},
        "shards": config.shards.to_section(),
    }
    with open(config.config_path, "wb") as f:
        tomli_w.dump(document, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """Open the config of a data directory, writing defaults on first use."""
    if (store_path / CONFIG_FILENAME).exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
