from __future__ import annotations

import logging
import re
from typing import Any

from ..errors import ApiError
from ..spoonacular.client import SpoonacularError, SpoonacularResponse, get_spoonacular_client
from . import external_ingredients, external_recipes

logger = logging.getLogger(__name__)

EXTERNAL_SOURCE = "spoonacular"
MAX_PAGE_SIZE = 20

_NUMERIC_ID = re.compile(r"^\d+$")


def _quota_headers(quota_left: str | None) -> dict[str, str]:
    return {"x-api-quota-left": quota_left} if quota_left else {}


def _spoonacular_failure(exc: SpoonacularError) -> ApiError:
    return ApiError(
        exc.status_code,
        str(exc),
        "SPOONACULAR_ERROR",
        details=exc.details,
        headers=_quota_headers(exc.quota_left),
    )


def simplify_nutrients(nutrition: Any) -> list[dict[str, Any]]:
    raw = nutrition.get("nutrients") if isinstance(nutrition, dict) else None
    if not isinstance(raw, list):
        return []
    return [
        {
            "name": n.get("name"),
            "amount": n.get("amount"),
            "unit": n.get("unit"),
            "percentOfDailyNeeds": n.get("percentOfDailyNeeds"),
        }
        for n in raw
    ]


def simplify_recipe(data: dict[str, Any]) -> dict[str, Any]:
    """Reduce a Spoonacular recipe payload to the fields the app stores."""
    has_nutrition = isinstance(data.get("nutrition"), dict)
    return {
        "id": data.get("id"),
        "title": data.get("title"),
        "image": data.get("image"),
        "sourceUrl": data.get("sourceUrl"),
        "readyInMinutes": data.get("readyInMinutes"),
        "servings": data.get("servings"),
        "summary": data.get("summary"),
        "instructions": data.get("instructions"),
        "extendedIngredients": [
            {
                "id": ing.get("id"),
                "name": ing.get("name"),
                "original": ing.get("original"),
                "amount": ing.get("amount"),
                "unit": ing.get("unit"),
                "image": ing.get("image"),
            }
            for ing in data.get("extendedIngredients") or []
        ],
        "nutrition": {"nutrients": simplify_nutrients(data["nutrition"])} if has_nutrition else None,
        "dishTypes": data.get("dishTypes"),
        "diets": data.get("diets"),
        "cuisines": data.get("cuisines"),
    }


def _persist(external_id: str, simplified: dict[str, Any], raw_ingredients: list[dict[str, Any]]) -> None:
    """Cache a fetched recipe and its ingredients. Failures are logged only."""
    try:
        external_recipes.upsert_from_external(EXTERNAL_SOURCE, external_id, simplified)
        external_ingredients.upsert_many_from_external(EXTERNAL_SOURCE, raw_ingredients)
    except Exception:
        logger.warning("Failed to persist external recipe %s", external_id, exc_info=True)


def search(q: str | None, number: int = 10, offset: int = 0) -> tuple[dict[str, Any], dict[str, str]]:
    """Cached matches first, topped up from Spoonacular. Returns ``(body, headers)``."""
    q = (q or "").strip()
    if not q:
        raise ApiError(400, "Missing query parameter: q", "MISSING_QUERY")
    number = min(max(number, 1), MAX_PAGE_SIZE)
    offset = max(offset, 0)

    cached = external_recipes.search_cached_by_title(EXTERNAL_SOURCE, q, number)
    if len(cached) >= number:
        return {
            "success": True,
            "results": cached,
            "totalResults": len(cached),
            "_meta": {"cachedCount": len(cached), "externalCount": 0, "offset": offset},
        }, {}

    try:
        resp = get_spoonacular_client().search_recipes(q, number - len(cached), offset)
    except SpoonacularError as exc:
        raise _spoonacular_failure(exc) from exc

    data = resp.data if isinstance(resp.data, dict) else {}
    cached_ids = {r["id"] for r in cached}
    external = [
        {**r, "_cached": False}
        for r in data.get("results") or []
        if r.get("id") not in cached_ids
    ]
    return {
        "success": True,
        "results": cached + external,
        "totalResults": data.get("totalResults", 0),
        "_meta": {"cachedCount": len(cached), "externalCount": len(external), "offset": offset},
    }, _quota_headers(resp.quota_left)


def details(recipe_id: str | None, include_nutrition: bool = False) -> tuple[dict[str, Any], dict[str, str]]:
    recipe_id = str(recipe_id or "").strip()
    if not _NUMERIC_ID.match(recipe_id):
        raise ApiError(400, "Invalid recipe id", "INVALID_RECIPE_ID")

    existing = external_recipes.find_by_external(EXTERNAL_SOURCE, recipe_id)
    if existing:
        nutrients = (existing.get("nutrition") or {}).get("nutrients")
        if not include_nutrition or nutrients:
            if not include_nutrition:
                existing.pop("nutrition", None)
            return {"success": True, "recipe": existing}, {}

    # Always fetch nutrition so it can be cached for later requests.
    try:
        resp: SpoonacularResponse = get_spoonacular_client().recipe_information(recipe_id, True)
    except SpoonacularError as exc:
        raise _spoonacular_failure(exc) from exc

    data = resp.data if isinstance(resp.data, dict) else {}
    simplified = simplify_recipe(data)
    if simplified["nutrition"] is None:
        simplified["nutrition"] = {"nutrients": []}
    _persist(recipe_id, simplified, data.get("extendedIngredients") or [])

    recipe = dict(simplified)
    if not include_nutrition:
        recipe.pop("nutrition")
    return {"success": True, "recipe": recipe}, _quota_headers(resp.quota_left)


def feed(number: int = 10) -> tuple[dict[str, Any], dict[str, str]]:
    """Most recently cached recipes, topped up with random Spoonacular recipes."""
    number = min(max(number, 1), MAX_PAGE_SIZE)
    cached = external_recipes.list_recent(EXTERNAL_SOURCE, number)
    if len(cached) >= number:
        return {
            "success": True,
            "results": cached,
            "_meta": {"cachedCount": len(cached), "externalCount": 0},
        }, {}

    try:
        resp = get_spoonacular_client().random_recipes(number - len(cached))
    except SpoonacularError as exc:
        raise _spoonacular_failure(exc) from exc

    data = resp.data if isinstance(resp.data, dict) else {}
    cached_ids = {r["id"] for r in cached}
    external = []
    for raw in data.get("recipes") or []:
        if raw.get("id") is None or raw["id"] in cached_ids:
            continue
        simplified = simplify_recipe(raw)
        _persist(str(raw["id"]), simplified, raw.get("extendedIngredients") or [])
        external.append({
            "id": raw["id"],
            "title": simplified["title"],
            "image": simplified["image"],
            "_cached": False,
        })

    return {
        "success": True,
        "results": cached + external,
        "_meta": {"cachedCount": len(cached), "externalCount": len(external)},
    }, _quota_headers(resp.quota_left)
