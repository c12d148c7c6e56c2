from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class MediaConfig:
    root: Path = Path(os.getenv("SAVR_MEDIA_ROOT", ".savr/media"))
    url_prefix: str = "/media"
    max_upload_bytes: int = 10 * 1024 * 1024


DEFAULT_MEDIA_CONFIG = MediaConfig()
