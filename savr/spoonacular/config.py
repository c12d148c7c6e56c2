from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class SpoonacularConfig:
    api_key: str = os.getenv("SPOONACULAR_API_KEY", "")
    api_base: str = "https://api.spoonacular.com"
    timeout: float = 15.0


DEFAULT_SPOONACULAR_CONFIG = SpoonacularConfig()
