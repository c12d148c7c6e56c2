from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ReviewRequest(BaseModel):
    recipeId: Any = None
    rating: Any = None
    review: Any = None
