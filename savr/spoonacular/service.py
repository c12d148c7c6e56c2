from __future__ import annotations

import logging
import re
from typing import Any

from ..catalog import external_ingredients
from ..errors import ApiError
from .client import SpoonacularError, get_spoonacular_client

logger = logging.getLogger(__name__)

EXTERNAL_SOURCE = "spoonacular"
MAX_AUTOCOMPLETE = 25

_NUMERIC_ID = re.compile(r"^\d+$")


def autocomplete_ingredients(q: str | None, number: int | None = 10) -> list[dict[str, Any]]:
    """Return ``[{id, name, image}]`` ingredient suggestions for ``q``."""
    q = (q or "").strip()
    if not q:
        raise ApiError(400, "Missing query parameter: q")
    number = min(number or 10, MAX_AUTOCOMPLETE)

    try:
        resp = get_spoonacular_client().search_ingredients(q, number)
    except SpoonacularError as exc:
        raise ApiError(exc.status_code, str(exc), "AUTOCOMPLETE_FAILED") from exc

    raw = resp.data.get("results") if isinstance(resp.data, dict) else None
    if not isinstance(raw, list):
        return []

    results = []
    for item in raw:
        if not item or not item.get("name"):
            continue
        item_id = item.get("id")
        if isinstance(item_id, bool) or not isinstance(item_id, (int, str)):
            continue
        try:
            item_id = int(item_id)
        except ValueError:
            continue
        results.append({
            "id": item_id,
            "name": str(item["name"]),
            "image": str(item["image"]) if item.get("image") else None,
        })
    return results


def ingredient_info(ingredient_id: str | None) -> dict[str, Any]:
    """Return ``{id, name, image, possibleUnits}``, served from the cache when possible."""
    ingredient_id = str(ingredient_id or "").strip()
    if not _NUMERIC_ID.match(ingredient_id):
        raise ApiError(400, "Invalid ingredient id")

    cached = external_ingredients.find_by_external(EXTERNAL_SOURCE, ingredient_id)
    if cached and cached["possibleUnits"]:
        logger.debug("Ingredient %s served from cache", ingredient_id)
        return {
            "id": cached["id"],
            "name": cached["name"],
            "image": cached["image"],
            "possibleUnits": cached["possibleUnits"],
        }

    try:
        resp = get_spoonacular_client().ingredient_information(ingredient_id)
    except SpoonacularError as exc:
        raise ApiError(exc.status_code, str(exc), "INGREDIENT_INFO_FAILED") from exc

    data = resp.data if isinstance(resp.data, dict) else {}
    units = data.get("possibleUnits")
    ingredient = {
        "id": data.get("id"),
        "name": data.get("name"),
        "image": data.get("image"),
        "possibleUnits": units if isinstance(units, list) else [],
    }
    if data.get("id"):
        external_ingredients.upsert_from_external(EXTERNAL_SOURCE, data)
    return ingredient
