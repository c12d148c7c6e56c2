from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class AuthConfig:
    token_secret: str = os.getenv("SAVR_TOKEN_SECRET", "savr-dev-secret-change-in-production")
    id_token_ttl: int = int(os.getenv("SAVR_TOKEN_TTL", "3600"))
    refresh_token_ttl: int = 30 * 24 * 60 * 60
    min_password_length: int = 6


DEFAULT_AUTH_CONFIG = AuthConfig()
