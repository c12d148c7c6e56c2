from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

from pydantic import ValidationError

from ..catalog.service import simplify_nutrients
from ..errors import ApiError
from ..spoonacular.client import SpoonacularError, get_spoonacular_client
from ..store import media
from ..store.documents import get_store, server_timestamp
from .models import RecipeInput, validation_messages

logger = logging.getLogger(__name__)

RECIPES_COLL = "personal_recipes"

_WHITESPACE = re.compile(r"\s+")


@dataclass
class ImageUpload:
    filename: str | None
    data: bytes

    @property
    def extension(self) -> str:
        suffix = PurePosixPath(self.filename or "").suffix.lstrip(".")
        return suffix or "jpg"


def _num(value: float) -> float | int:
    return int(value) if float(value).is_integer() else value


def _image_folder(uid: str, recipe_id: str) -> str:
    return f"users/{uid}/recipes/{recipe_id}/"


# ── Ingredient normalisation ─────────────────────────────────────────────


def parse_any_ingredients(raw_extended: Any, raw_ingredients: Any) -> list[Any]:
    """Accept ``extendedIngredients`` or legacy ``ingredients`` as a list or JSON string."""
    raw = raw_extended if raw_extended is not None else raw_ingredients
    if not raw:
        return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def normalize_to_extended_ingredients(items: list[Any]) -> list[dict[str, Any]]:
    """Map extended (``amount``) and legacy (``quantity``) shapes onto the extended shape."""
    normalized = []
    for x in items:
        if not isinstance(x, dict) or not x.get("name"):
            continue
        if "amount" in x or "unit" in x:
            normalized.append({
                "id": x.get("id"),
                "name": str(x["name"]),
                "original": x.get("original") or x["name"],
                "amount": next(
                    (x[k] for k in ("amount", "quantity") if x.get(k) is not None), 0
                ),
                "unit": str(x.get("unit") or ""),
                "image": x.get("image"),
            })
        elif "quantity" in x:
            normalized.append({
                "id": None,
                "name": str(x["name"]),
                "original": str(x["name"]),
                "amount": x["quantity"] if x.get("quantity") is not None else 0,
                "unit": "",
                "image": None,
            })
    return normalized


def to_ingredient_line(ing: dict[str, Any]) -> str:
    """``{amount: 2, unit: "tbsp", name: "olive oil"}`` -> ``"2 tbsp olive oil"``."""
    amount = ing.get("amount")
    amount = "" if amount is None else amount
    name = ing.get("name") or ing.get("original") or ""
    line = f"{amount} {ing.get('unit') or ''} {name}"
    return _WHITESPACE.sub(" ", line).strip()


def _validate(incoming: dict[str, Any]) -> RecipeInput:
    try:
        return RecipeInput.model_validate(incoming)
    except ValidationError as exc:
        messages = validation_messages(exc)
        raise ApiError(400, messages, "VALIDATION_ERROR", details=messages) from exc


def _recipe_fields(recipe: RecipeInput) -> dict[str, Any]:
    return {
        "title": recipe.title,
        "summary": recipe.summary or None,
        "prepTime": _num(recipe.prepTime),
        "cookTime": _num(recipe.cookTime),
        "readyInMinutes": _num(recipe.prepTime + recipe.cookTime),
        "servings": _num(recipe.servings),
        "extendedIngredients": [
            {
                "id": _num(ing.id) if ing.id is not None else None,
                "name": ing.name,
                "original": ing.original or ing.name,
                "amount": _num(ing.amount),
                "unit": ing.unit.lower(),
                "image": ing.image,
            }
            for ing in recipe.extendedIngredients
        ],
        "instructions": recipe.instructions,
    }


# ── Nutrition ────────────────────────────────────────────────────────────


def compute_and_store_nutrition(recipe_id: str, recipe: dict[str, Any]) -> dict[str, Any]:
    """Analyze the recipe with Spoonacular and store ``nutrition``/``calories`` on it.

    Returns ``{"skipped": True, "reason": ...}`` when the ingredients cannot be
    analyzed; raises ``SpoonacularError`` when the upstream call fails.
    """
    ingredients = recipe.get("extendedIngredients") or []
    if not ingredients:
        return {"nutrition": None, "calories": None, "skipped": True, "reason": "NO_INGREDIENTS"}

    lines = [line for line in map(to_ingredient_line, ingredients) if line]
    if not lines:
        return {"nutrition": None, "calories": None, "skipped": True, "reason": "BAD_INGREDIENTS"}

    resp = get_spoonacular_client().analyze_recipe({
        "title": recipe.get("title") or "Personal Recipe",
        "servings": recipe.get("servings") or 1,
        "ingredients": lines,
        "instructions": recipe.get("instructions") or "",
    })

    data = resp.data if isinstance(resp.data, dict) else {}
    nutrients = simplify_nutrients(data.get("nutrition"))
    calories = next(
        (n["amount"] for n in nutrients if str(n.get("name") or "").lower() == "calories"),
        None,
    )
    calories = float(calories) if calories is not None else None
    nutrition = {"nutrients": nutrients}

    get_store().collection(RECIPES_COLL).update(recipe_id, {
        "nutrition": nutrition,
        "calories": calories,
        "updatedAt": server_timestamp(),
    })
    return {"nutrition": nutrition, "calories": calories, "skipped": False}


# ── CRUD ─────────────────────────────────────────────────────────────────


def _owned(uid: str, recipe_id: str, action: str | None = None) -> dict[str, Any]:
    data = get_store().collection(RECIPES_COLL).get(recipe_id)
    if data is None:
        raise ApiError(404, "Recipe not found", "RECIPE_NOT_FOUND")
    if data.get("userId") != uid:
        message = f"You don't have permission to {action} this recipe" if action else "Forbidden"
        raise ApiError(403, message, "FORBIDDEN")
    return data


def _store_image(uid: str, recipe_id: str, image: ImageUpload) -> str:
    path = f"{_image_folder(uid, recipe_id)}thumbnail.{image.extension}"
    try:
        return media.save_file(path, image.data)
    except (OSError, ValueError) as exc:
        logger.error("Error uploading recipe image", exc_info=True)
        raise ApiError(500, str(exc) or "Failed to upload image", "IMAGE_UPLOAD_FAILED") from exc


def _clear_images(uid: str, recipe_id: str, reason: str) -> None:
    try:
        media.delete_prefix(_image_folder(uid, recipe_id))
    except OSError:
        logger.warning("Storage cleanup on %s failed", reason, exc_info=True)


def create_recipe(uid: str, body: dict[str, Any], image: ImageUpload | None = None) -> dict[str, Any]:
    normalized = normalize_to_extended_ingredients(
        parse_any_ingredients(body.get("extendedIngredients"), body.get("ingredients"))
    )
    recipe = _validate({
        "title": body.get("title") or "",
        "summary": body.get("summary") or "",
        "image": body.get("image"),
        "prepTime": body.get("prepTime"),
        "cookTime": body.get("cookTime"),
        "servings": body.get("servings"),
        "extendedIngredients": normalized,
        "instructions": body.get("instructions") or "",
    })

    now = server_timestamp()
    payload = {
        "userId": uid,
        **_recipe_fields(recipe),
        "image": None,
        "nutrition": None,
        "calories": None,
        "dishTypes": [],
        "diets": [],
        "cuisines": [],
        "reviews": [],
        "createdAt": now,
        "updatedAt": now,
    }
    recipes = get_store().collection(RECIPES_COLL)
    recipe_id = recipes.add(payload)

    if image is not None and image.data:
        url = _store_image(uid, recipe_id, image)
        recipes.update(recipe_id, {"image": url, "updatedAt": server_timestamp()})

    try:
        result = compute_and_store_nutrition(recipe_id, payload)
    except SpoonacularError as exc:
        logger.warning("Nutrition compute failed on create: %s", exc.details or exc)
        return {
            "success": True,
            "id": recipe_id,
            "message": "Recipe created successfully (nutrition pending)",
        }

    return {
        "success": True,
        "id": recipe_id,
        "message": "Recipe created successfully",
        "nutrition": result["nutrition"],
        "calories": result["calories"],
    }


def list_recipes(uid: str) -> list[dict[str, Any]]:
    docs = (
        get_store()
        .collection(RECIPES_COLL)
        .where("userId", "==", uid)
        .order_by("createdAt", descending=True)
        .stream()
    )
    return [d.to_dict() for d in docs]


def get_recipe(uid: str, recipe_id: str) -> dict[str, Any]:
    return {"id": recipe_id, **_owned(uid, recipe_id)}


def update_recipe(
    uid: str,
    recipe_id: str,
    body: dict[str, Any],
    image: ImageUpload | None = None,
) -> None:
    """Merge ``body`` over the stored recipe. New ingredients reset nutrition."""
    existing = _owned(uid, recipe_id, "update")

    ingredients_provided = (
        body.get("extendedIngredients") is not None or body.get("ingredients") is not None
    )
    if ingredients_provided:
        normalized = normalize_to_extended_ingredients(
            parse_any_ingredients(body.get("extendedIngredients"), body.get("ingredients"))
        )
    else:
        normalized = existing.get("extendedIngredients") or []

    def pick(field: str, default: Any) -> Any:
        value = body.get(field)
        if value is None:
            value = existing.get(field)
        return default if value is None else value

    recipe = _validate({
        "title": pick("title", ""),
        "summary": pick("summary", ""),
        "image": pick("image", None),
        "prepTime": pick("prepTime", 0),
        "cookTime": pick("cookTime", 0),
        "servings": pick("servings", 1),
        "extendedIngredients": normalized,
        "instructions": pick("instructions", ""),
    })

    image_url = existing.get("image")
    remove_image = body.get("removeImage") in (True, "true")
    if remove_image:
        _clear_images(uid, recipe_id, "image remove")
        image_url = None
    elif image is not None and image.data:
        _clear_images(uid, recipe_id, "image replace")
        image_url = _store_image(uid, recipe_id, image)

    get_store().collection(RECIPES_COLL).update(recipe_id, {
        **_recipe_fields(recipe),
        "image": image_url,
        "nutrition": None if ingredients_provided else existing.get("nutrition"),
        "calories": None if ingredients_provided else existing.get("calories"),
        "updatedAt": server_timestamp(),
    })


def delete_recipe(uid: str, recipe_id: str) -> None:
    _owned(uid, recipe_id, "delete")
    get_store().collection(RECIPES_COLL).delete(recipe_id)
    _clear_images(uid, recipe_id, "recipe delete")


def compute_nutrition(uid: str, recipe_id: str, force: bool = False) -> dict[str, Any]:
    recipe = _owned(uid, recipe_id)

    if not force and recipe.get("nutrition"):
        return {
            "success": True,
            "nutrition": recipe["nutrition"],
            "calories": recipe.get("calories"),
            "cached": True,
        }

    try:
        result = compute_and_store_nutrition(recipe_id, recipe)
    except SpoonacularError as exc:
        raise ApiError(
            exc.status_code,
            str(exc) or "Nutrition analysis failed",
            "NUTRITION_ANALYSIS_FAILED",
        ) from exc

    if result["skipped"]:
        message = (
            "Recipe has no ingredients"
            if result["reason"] == "NO_INGREDIENTS"
            else "Ingredients were invalid/unusable"
        )
        raise ApiError(400, message, result["reason"])

    return {
        "success": True,
        "nutrition": result["nutrition"],
        "calories": result["calories"],
        "cached": False,
    }
