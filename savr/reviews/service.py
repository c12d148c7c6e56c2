from __future__ import annotations

import math
from typing import Any

from ..errors import ApiError
from ..store.documents import get_store, server_timestamp

REVIEWS_COLL = "reviews"


def _parse_rating(rating: Any) -> float | int:
    try:
        value = float(rating)
    except (TypeError, ValueError):
        value = math.nan
    if isinstance(rating, bool) or not math.isfinite(value) or not 1 <= value <= 5:
        raise ApiError(400, "Rating must be a number between 1 and 5", "INVALID_RATING")
    return int(value) if value.is_integer() else value


def create_review(user: dict[str, Any], recipe_id: Any, rating: Any, review: Any) -> dict[str, Any]:
    """Store one review per user per recipe and return it."""
    if not recipe_id:
        raise ApiError(400, "Recipe ID is required", "MISSING_RECIPE_ID")
    recipe_id = str(recipe_id)

    score = _parse_rating(rating)
    text = review.strip() if isinstance(review, str) else ""
    if not text:
        raise ApiError(400, "Review text is required", "INVALID_REVIEW")

    doc = {
        "recipeId": recipe_id,
        "userId": user["uid"],
        "authorDisplayName": user.get("username") or user.get("email"),
        "rating": score,
        "review": text,
        "createdAt": server_timestamp(),
    }
    # One document per user and recipe.
    review_id = f"{recipe_id}_{user['uid']}"
    if not get_store().collection(REVIEWS_COLL).create(review_id, doc):
        raise ApiError(409, "You have already reviewed this recipe", "REVIEW_ALREADY_EXISTS")
    return {"id": review_id, **doc}


def list_reviews(recipe_id: str | None) -> list[dict[str, Any]]:
    if not recipe_id:
        raise ApiError(400, "Recipe ID is required", "MISSING_RECIPE_ID")

    docs = get_store().collection(REVIEWS_COLL).where("recipeId", "==", recipe_id).stream()
    return [
        {
            "id": d.id,
            "recipeId": d.data.get("recipeId"),
            "userId": d.data.get("userId"),
            "authorDisplayName": d.data.get("authorDisplayName"),
            "rating": d.data.get("rating"),
            "review": d.data.get("review"),
            "createdAt": d.data.get("createdAt"),
        }
        for d in docs
    ]
