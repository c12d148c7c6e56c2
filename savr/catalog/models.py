from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class IngredientBatchRequest(BaseModel):
    ingredientIds: Any = None
