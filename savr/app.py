from __future__ import annotations

import json
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from .auth import service as auth_service
from .auth.dependencies import require_user
from .auth.models import (
    FavoritesRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    UpdateAccountRequest,
    UsernameCheckRequest,
)
from .catalog import external_ingredients
from .catalog import service as catalog_service
from .catalog.models import IngredientBatchRequest
from .errors import ApiError, setup_exception_handlers
from .grocery import service as grocery_service
from .grocery.cache import get_cache_stats
from .grocery.models import PriceBatchRequest
from .grocery.pricing import clamp_limit
from .pantry import service as pantry_service
from .pantry.models import PantryItemRequest
from .recipes import service as recipes_service
from .recipes.service import ImageUpload
from .reviews import service as reviews_service
from .reviews.models import ReviewRequest
from .spoonacular import service as spoonacular_service
from .store import media

app = FastAPI(title="Savr API", version="1.0.0")
setup_exception_handlers(app)

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "priceCache": get_cache_stats()}


@app.get("/media/{path:path}")
def media_file(path: str):
    target = media.find_file(path)
    if target is None:
        raise ApiError(404, "File not found", "NOT_FOUND")
    return FileResponse(str(target))


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/api/auth/check-username")
def check_username(body: UsernameCheckRequest) -> dict:
    return {"available": auth_service.is_username_available(body.username)}


@app.post("/api/auth/register", status_code=201)
def register(body: RegisterRequest) -> dict:
    uid = auth_service.register(body.email, body.password, body.username)
    return {"success": True, "uid": uid, "message": "User created successfully"}


@app.post("/api/auth/login", response_model=LoginResponse)
def login(body: LoginRequest) -> LoginResponse:
    return LoginResponse(**auth_service.login(body.email, body.password))


@app.post("/api/auth/refresh")
def refresh(body: RefreshRequest) -> dict:
    return {"success": True, **auth_service.refresh(body.refreshToken)}


@app.put("/api/auth/update-account")
def update_account(body: UpdateAccountRequest, user: dict = Depends(require_user)) -> dict:
    auth_service.update_account(user["uid"], body.email, body.password, body.username)
    return {"success": True, "uid": user["uid"], "message": "Account updated successfully"}


@app.put("/api/auth/update-favorites")
def update_favorites(body: FavoritesRequest, user: dict = Depends(require_user)) -> dict:
    auth_service.update_favorites(user["uid"], body.favoriteIds)
    return {"success": True, "message": "Favorites updated successfully"}


@app.get("/api/auth/favorites")
def favorites(user: dict = Depends(require_user)) -> dict:
    return {"success": True, "favoriteIds": auth_service.get_favorites(user["uid"])}


@app.delete("/api/auth/delete-account")
def delete_account(user: dict = Depends(require_user)) -> dict:
    auth_service.delete_account(user["uid"])
    return {"success": True, "message": "Account deleted successfully"}


# ── Personal recipes ─────────────────────────────────────────────────────


async def _read_recipe_request(request: Request) -> tuple[dict[str, Any], ImageUpload | None]:
    """Parse a JSON or form recipe body into ``(fields, image)``."""
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(_FORM_TYPES):
        raw = await request.body()
        if not raw:
            return {}, None
        try:
            body = json.loads(raw)
        except ValueError as exc:
            raise ApiError(400, "Malformed JSON body", "INVALID_JSON") from exc
        return (body if isinstance(body, dict) else {}), None

    form = await request.form()
    fields = {k: v for k, v in form.multi_items() if isinstance(v, str)}
    upload = form.get("image")
    if not isinstance(upload, UploadFile):
        return fields, None

    data = await upload.read()
    if len(data) > media.get_config().max_upload_bytes:
        raise ApiError(413, "Image must be 10 MB or smaller", "IMAGE_TOO_LARGE")
    return fields, ImageUpload(filename=upload.filename, data=data)


@app.post("/api/recipes", status_code=201)
async def create_recipe(request: Request, user: dict = Depends(require_user)) -> dict:
    body, image = await _read_recipe_request(request)
    return await run_in_threadpool(recipes_service.create_recipe, user["uid"], body, image)


@app.get("/api/recipes")
def list_recipes(user: dict = Depends(require_user)) -> dict:
    return {"success": True, "recipes": recipes_service.list_recipes(user["uid"])}


@app.get("/api/recipes/{recipe_id}")
def get_recipe(recipe_id: str, user: dict = Depends(require_user)) -> dict:
    return {"success": True, "recipe": recipes_service.get_recipe(user["uid"], recipe_id)}


@app.put("/api/recipes/{recipe_id}")
async def update_recipe(recipe_id: str, request: Request, user: dict = Depends(require_user)) -> dict:
    body, image = await _read_recipe_request(request)
    await run_in_threadpool(recipes_service.update_recipe, user["uid"], recipe_id, body, image)
    return {"success": True, "message": "Recipe updated successfully"}


@app.delete("/api/recipes/{recipe_id}")
def delete_recipe(recipe_id: str, user: dict = Depends(require_user)) -> dict:
    recipes_service.delete_recipe(user["uid"], recipe_id)
    return {"success": True, "message": "Recipe deleted successfully"}


@app.post("/api/recipes/{recipe_id}/nutrition")
def recipe_nutrition(recipe_id: str, force: bool = False, user: dict = Depends(require_user)) -> dict:
    return recipes_service.compute_nutrition(user["uid"], recipe_id, force)


# ── Pantry ───────────────────────────────────────────────────────────────


@app.post("/api/pantry", status_code=201)
def add_pantry_item(body: PantryItemRequest, user: dict = Depends(require_user)) -> dict:
    return {"item": pantry_service.add_item(user["uid"], body.name, body.quantity, body.unit)}


@app.get("/api/pantry")
def list_pantry(user: dict = Depends(require_user)) -> dict:
    return {"items": pantry_service.list_items(user["uid"])}


@app.delete("/api/pantry/{item_id}")
def delete_pantry_item(item_id: str, user: dict = Depends(require_user)) -> dict:
    pantry_service.delete_item(user["uid"], item_id)
    return {"success": True}


# ── Reviews ──────────────────────────────────────────────────────────────


@app.post("/api/reviews", status_code=201)
def create_review(body: ReviewRequest, user: dict = Depends(require_user)) -> dict:
    return reviews_service.create_review(user, body.recipeId, body.rating, body.review)


@app.get("/api/reviews")
def list_reviews(recipeId: str | None = None, user: dict = Depends(require_user)) -> dict:
    reviews = reviews_service.list_reviews(recipeId)
    return {"reviews": reviews, "total": len(reviews)}


# ── Ingredients ──────────────────────────────────────────────────────────


@app.post("/api/ingredients/batch")
def ingredients_batch(body: IngredientBatchRequest) -> dict:
    ids = body.ingredientIds
    if not isinstance(ids, list) or not ids:
        raise ApiError(400, "ingredientIds array is required", "MISSING_FIELDS")
    return {
        "success": True,
        "ingredients": external_ingredients.find_by_doc_ids([str(i) for i in ids]),
    }


# ── Kroger pricing ───────────────────────────────────────────────────────


@app.get("/api/kroger/quick-location")
def kroger_quick_location(zip: str | None = None) -> dict:
    return grocery_service.quick_location(zip)


@app.get("/api/kroger/price")
def kroger_price(
    term: str | None = None,
    locationId: str | None = None,
    limit: int = 5,
    method: str = "median",
    includeCandidates: bool = False,
) -> dict:
    return grocery_service.lookup_price(
        term, locationId, clamp_limit(limit), method, includeCandidates
    )


@app.post("/api/kroger/price/batch")
def kroger_price_batch(body: PriceBatchRequest) -> dict:
    return grocery_service.price_batch(
        body.terms, body.locationId, body.method, clamp_limit(body.limit)
    )


@app.get("/api/kroger/price/multi-store")
def kroger_multi_store(
    term: str | None = None,
    zip: str | None = None,
    stores: int = 3,
    limit: int = 5,
    method: str = "median",
) -> dict:
    return grocery_service.multi_store_price(
        term, zip, clamp_limit(limit), max(stores, 1), method
    )


# ── Spoonacular proxy ────────────────────────────────────────────────────


@app.get("/api/spoonacular/ingredients/autocomplete")
def ingredient_autocomplete(q: str | None = None, number: int = 10) -> dict:
    return {
        "success": True,
        "results": spoonacular_service.autocomplete_ingredients(q, number),
    }


@app.get("/api/spoonacular/ingredients/{ingredient_id}")
def ingredient_information(ingredient_id: str) -> dict:
    return {"success": True, "ingredient": spoonacular_service.ingredient_info(ingredient_id)}


# ── External recipes ─────────────────────────────────────────────────────


@app.get("/api/external-recipes/search")
def external_search(
    response: Response,
    q: str | None = None,
    number: int = 10,
    offset: int = 0,
) -> dict:
    body, headers = catalog_service.search(q, number, offset)
    response.headers.update(headers)
    return body


@app.get("/api/external-recipes/feed")
def external_feed(response: Response, number: int = 10) -> dict:
    body, headers = catalog_service.feed(number)
    response.headers.update(headers)
    return body


@app.get("/api/external-recipes/{recipe_id}/details")
def external_details(
    recipe_id: str,
    response: Response,
    includeNutrition: bool = False,
) -> dict:
    body, headers = catalog_service.details(recipe_id, includeNutrition)
    response.headers.update(headers)
    return body
