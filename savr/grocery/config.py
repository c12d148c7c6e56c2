from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class KrogerConfig:
    client_id: str = os.getenv("KROGER_CLIENT_ID", "")
    client_secret: str = os.getenv("KROGER_CLIENT_SECRET", "")
    api_base: str = os.getenv("KROGER_API_BASE", "https://api.kroger.com/v1")
    scope: str = "product.compact"
    timeout: float = 10.0
    # Kroger tokens last 30 minutes
    token_ttl: float = 29 * 60
    price_cache_ttl: float = 10 * 60
    max_workers: int = 8


DEFAULT_KROGER_CONFIG = KrogerConfig()
