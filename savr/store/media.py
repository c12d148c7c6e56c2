from __future__ import annotations

import logging
import shutil
from pathlib import Path, PurePosixPath

from .config import DEFAULT_MEDIA_CONFIG, MediaConfig

logger = logging.getLogger(__name__)

_config: MediaConfig = DEFAULT_MEDIA_CONFIG


def configure(config: MediaConfig) -> None:
    global _config
    _config = config


def get_config() -> MediaConfig:
    return _config


def resolve_path(relative: str) -> Path:
    parts = PurePosixPath(relative).parts
    if not parts or ".." in parts or PurePosixPath(relative).is_absolute():
        raise ValueError(f"Invalid media path: {relative!r}")
    return _config.root.joinpath(*parts)


def save_file(relative: str, data: bytes) -> str:
    """Write ``data`` under the media root and return its public URL."""
    target = resolve_path(relative)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    logger.info("Stored %d bytes at %s", len(data), relative)
    return f"{_config.url_prefix}/{relative}"


def delete_prefix(prefix: str) -> int:
    """Remove every file below ``prefix``. Returns the number of files removed."""
    folder = resolve_path(prefix.rstrip("/"))
    if not folder.exists():
        return 0
    count = sum(1 for p in folder.rglob("*") if p.is_file())
    shutil.rmtree(folder)
    return count


def find_file(relative: str) -> Path | None:
    try:
        target = resolve_path(relative)
    except ValueError:
        return None
    return target if target.is_file() else None
