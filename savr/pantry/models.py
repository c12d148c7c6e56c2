from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class PantryItemRequest(BaseModel):
    name: Any = None
    quantity: Any = None
    unit: Any = None
