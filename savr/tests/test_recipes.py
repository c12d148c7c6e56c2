from __future__ import annotations

import json

from fastapi.testclient import TestClient

from savr.app import app
from savr.recipes.service import (
    normalize_to_extended_ingredients,
    parse_any_ingredients,
    to_ingredient_line,
)
from savr.store import media
from savr.store.documents import get_store

SPOONACULAR_BASE = "https://spoonacular.test"

client = TestClient(app)

ANALYSIS = {
    "nutrition": {"nutrients": [
        {"name": "Calories", "amount": 410.0, "unit": "kcal", "percentOfDailyNeeds": 20.5},
        {"name": "Protein", "amount": 12.0, "unit": "g", "percentOfDailyNeeds": 24.0},
    ]},
}


def _recipe_body(**overrides):
    body = {
        "title": "Garlic Toast",
        "summary": "Crunchy.",
        "prepTime": 5,
        "cookTime": 10,
        "servings": 2,
        "extendedIngredients": [
            {"name": "bread", "amount": 2, "unit": "Slice"},
            {"name": "garlic", "amount": 1, "unit": "clove"},
        ],
        "instructions": "Toast the bread and rub with garlic.",
    }
    body.update(overrides)
    return body


def _headers(email="cook@example.com", username="cook"):
    client.post("/api/auth/register", json={
        "email": email, "password": "secret123", "username": username,
    })
    login = client.post("/api/auth/login", json={"email": email, "password": "secret123"}).json()
    return {"Authorization": f"Bearer {login['idToken']}"}


def _mock_analyze(mock_httpx, **kwargs):
    return mock_httpx.post(f"{SPOONACULAR_BASE}/recipes/analyze").respond(**kwargs)


# ── Ingredient normalisation ─────────────────────────────────────────────


def test_parse_any_ingredients_accepts_list_or_json():
    items = [{"name": "salt"}]
    assert parse_any_ingredients(items, None) == items
    assert parse_any_ingredients(None, json.dumps(items)) == items
    assert parse_any_ingredients("not json", None) == []
    assert parse_any_ingredients('{"name": "salt"}', None) == []
    assert parse_any_ingredients(None, None) == []


def test_normalize_legacy_and_extended_shapes():
    normalized = normalize_to_extended_ingredients([
        {"name": "flour", "quantity": 3},
        {"name": "sugar", "quantity": 1, "unit": "cup"},
        {"id": 5, "name": "eggs", "amount": 2, "unit": "", "original": "2 eggs"},
        {"quantity": 4},
        "junk",
    ])
    assert normalized == [
        {"id": None, "name": "flour", "original": "flour", "amount": 3, "unit": "", "image": None},
        {"id": None, "name": "sugar", "original": "sugar", "amount": 1, "unit": "cup", "image": None},
        {"id": 5, "name": "eggs", "original": "2 eggs", "amount": 2, "unit": "", "image": None},
    ]


def test_to_ingredient_line():
    assert to_ingredient_line({"amount": 2, "unit": "tbsp", "name": "olive oil"}) == "2 tbsp olive oil"
    assert to_ingredient_line({"amount": None, "unit": "", "original": "salt"}) == "salt"


# ── Create ───────────────────────────────────────────────────────────────


def test_create_recipe_with_nutrition(mock_httpx, spoonacular):
    route = _mock_analyze(mock_httpx, json=ANALYSIS)
    headers = _headers()

    resp = client.post("/api/recipes", json=_recipe_body(), headers=headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Recipe created successfully"
    assert body["calories"] == 410.0
    assert body["nutrition"]["nutrients"][1]["name"] == "Protein"

    sent = json.loads(route.calls.last.request.content)
    assert sent["ingredients"] == ["2 slice bread", "1 clove garlic"]
    assert sent["servings"] == 2

    stored = get_store().collection("personal_recipes").get(body["id"])
    assert stored["readyInMinutes"] == 15
    assert stored["extendedIngredients"][0]["unit"] == "slice"
    assert stored["extendedIngredients"][0]["original"] == "bread"
    assert stored["calories"] == 410.0
    assert stored["image"] is None
    assert stored["dishTypes"] == [] and stored["reviews"] == []


def test_create_recipe_nutrition_pending_on_upstream_failure(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, status_code=402, json={"message": "Daily points limit reached"})
    resp = client.post("/api/recipes", json=_recipe_body(), headers=_headers())
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Recipe created successfully (nutrition pending)"
    assert "nutrition" not in body

    stored = get_store().collection("personal_recipes").get(body["id"])
    assert stored["nutrition"] is None


def test_create_recipe_validation_errors():
    resp = client.post(
        "/api/recipes",
        json=_recipe_body(title="  ", servings=0, extendedIngredients=[], instructions=""),
        headers=_headers(),
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["error"] == body["details"]
    assert "Recipe title is required" in body["error"]
    assert "Total servings must be at least 1" in body["error"]
    assert "At least one ingredient is required" in body["error"]
    assert "Instructions are required" in body["error"]


def test_create_recipe_ingredient_validation():
    resp = client.post(
        "/api/recipes",
        json=_recipe_body(extendedIngredients=[{"name": "salt", "amount": -1, "unit": "pinch"}]),
        headers=_headers(),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == ["Amount must be >= 0"]


def test_create_recipe_requires_auth():
    assert client.post("/api/recipes", json=_recipe_body()).status_code == 401


def test_create_recipe_multipart_with_image(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    headers = _headers()
    form = {
        "title": "Garlic Toast",
        "prepTime": "5",
        "cookTime": "10",
        "servings": "2",
        "ingredients": json.dumps([{"name": "bread", "quantity": 2, "unit": "slice"}]),
        "instructions": "Toast.",
    }
    resp = client.post(
        "/api/recipes",
        data=form,
        files={"image": ("toast.png", b"\x89PNG-bytes", "image/png")},
        headers=headers,
    )
    assert resp.status_code == 201
    recipe_id = resp.json()["id"]

    recipe = client.get(f"/api/recipes/{recipe_id}", headers=headers).json()["recipe"]
    uid = recipe["userId"]
    assert recipe["image"] == f"/media/users/{uid}/recipes/{recipe_id}/thumbnail.png"
    assert recipe["prepTime"] == 5

    image = client.get(recipe["image"])
    assert image.status_code == 200
    assert image.content == b"\x89PNG-bytes"


def test_create_recipe_image_too_large():
    headers = _headers()
    too_big = b"x" * (media.get_config().max_upload_bytes + 1)
    resp = client.post(
        "/api/recipes",
        data={"title": "Big"},
        files={"image": ("big.jpg", too_big, "image/jpeg")},
        headers=headers,
    )
    assert resp.status_code == 413
    assert resp.json()["code"] == "IMAGE_TOO_LARGE"


# ── Read ─────────────────────────────────────────────────────────────────


def test_list_recipes_newest_first_and_owned_only(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    other = _headers(email="other@example.com", username="other")
    client.post("/api/recipes", json=_recipe_body(title="Not mine"), headers=other)

    headers = _headers()
    client.post("/api/recipes", json=_recipe_body(title="First"), headers=headers)
    client.post("/api/recipes", json=_recipe_body(title="Second"), headers=headers)

    resp = client.get("/api/recipes", headers=headers)
    assert resp.status_code == 200
    assert [r["title"] for r in resp.json()["recipes"]] == ["Second", "First"]


def test_get_recipe_not_found_and_forbidden(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    owner = _headers()
    recipe_id = client.post("/api/recipes", json=_recipe_body(), headers=owner).json()["id"]
    intruder = _headers(email="other@example.com", username="other")

    resp = client.get("/api/recipes/missing", headers=owner)
    assert resp.status_code == 404
    assert resp.json()["code"] == "RECIPE_NOT_FOUND"

    resp = client.get(f"/api/recipes/{recipe_id}", headers=intruder)
    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


# ── Update / delete ──────────────────────────────────────────────────────


def test_update_merges_and_resets_nutrition(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    headers = _headers()
    recipe_id = client.post("/api/recipes", json=_recipe_body(), headers=headers).json()["id"]

    resp = client.put(f"/api/recipes/{recipe_id}", json={"title": "Better Toast"}, headers=headers)
    assert resp.status_code == 200
    stored = get_store().collection("personal_recipes").get(recipe_id)
    assert stored["title"] == "Better Toast"
    assert stored["servings"] == 2
    assert stored["calories"] == 410.0

    client.put(
        f"/api/recipes/{recipe_id}",
        json={"extendedIngredients": [{"name": "rye bread", "amount": 1, "unit": "slice"}]},
        headers=headers,
    )
    stored = get_store().collection("personal_recipes").get(recipe_id)
    assert stored["extendedIngredients"][0]["name"] == "rye bread"
    assert stored["nutrition"] is None
    assert stored["calories"] is None


def test_update_forbidden_message(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    recipe_id = client.post("/api/recipes", json=_recipe_body(), headers=_headers()).json()["id"]
    intruder = _headers(email="other@example.com", username="other")
    resp = client.put(f"/api/recipes/{recipe_id}", json={"title": "Mine now"}, headers=intruder)
    assert resp.status_code == 403
    assert resp.json()["error"] == "You don't have permission to update this recipe"


def test_update_replaces_then_removes_image(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    headers = _headers()
    recipe_id = client.post(
        "/api/recipes",
        data={**{k: str(v) for k, v in _recipe_body().items() if k != "extendedIngredients"},
              "extendedIngredients": json.dumps(_recipe_body()["extendedIngredients"])},
        files={"image": ("a.png", b"first", "image/png")},
        headers=headers,
    ).json()["id"]

    client.put(
        f"/api/recipes/{recipe_id}",
        data={"title": "Garlic Toast"},
        files={"image": ("b.jpg", b"second", "image/jpeg")},
        headers=headers,
    )
    image_url = get_store().collection("personal_recipes").get(recipe_id)["image"]
    assert image_url.endswith("/thumbnail.jpg")
    assert client.get(image_url).content == b"second"
    assert client.get(image_url.replace(".jpg", ".png")).status_code == 404

    client.put(f"/api/recipes/{recipe_id}", data={"removeImage": "true"}, headers=headers)
    assert get_store().collection("personal_recipes").get(recipe_id)["image"] is None
    assert client.get(image_url).status_code == 404


def test_delete_recipe_removes_document_and_images(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    headers = _headers()
    recipe_id = client.post(
        "/api/recipes",
        data={"title": "Toast", "prepTime": "1", "cookTime": "1", "servings": "1",
              "ingredients": json.dumps([{"name": "bread", "quantity": 1, "unit": "slice"}]),
              "instructions": "Toast."},
        files={"image": ("t.png", b"img", "image/png")},
        headers=headers,
    ).json()["id"]
    image_url = client.get(f"/api/recipes/{recipe_id}", headers=headers).json()["recipe"]["image"]

    resp = client.delete(f"/api/recipes/{recipe_id}", headers=headers)
    assert resp.status_code == 200
    assert client.get(f"/api/recipes/{recipe_id}", headers=headers).status_code == 404
    assert client.get(image_url).status_code == 404


# ── Nutrition ────────────────────────────────────────────────────────────


def test_nutrition_cached_unless_forced(mock_httpx, spoonacular):
    route = _mock_analyze(mock_httpx, json=ANALYSIS)
    headers = _headers()
    recipe_id = client.post("/api/recipes", json=_recipe_body(), headers=headers).json()["id"]

    resp = client.post(f"/api/recipes/{recipe_id}/nutrition", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["cached"] is True
    assert route.call_count == 1

    resp = client.post(f"/api/recipes/{recipe_id}/nutrition?force=true", headers=headers)
    assert resp.json()["cached"] is False
    assert resp.json()["calories"] == 410.0
    assert route.call_count == 2


def test_nutrition_upstream_failure(mock_httpx, spoonacular):
    route = _mock_analyze(mock_httpx, status_code=402, json={"message": "Daily points limit reached"})
    headers = _headers()
    recipe_id = client.post("/api/recipes", json=_recipe_body(), headers=headers).json()["id"]

    resp = client.post(f"/api/recipes/{recipe_id}/nutrition", headers=headers)
    assert resp.status_code == 402
    assert resp.json() == {
        "error": "Daily points limit reached", "code": "NUTRITION_ANALYSIS_FAILED",
    }
    assert route.call_count == 2


def test_nutrition_without_ingredients(mock_httpx, spoonacular):
    _mock_analyze(mock_httpx, json=ANALYSIS)
    headers = _headers()
    recipe_id = client.post("/api/recipes", json=_recipe_body(), headers=headers).json()["id"]
    get_store().collection("personal_recipes").update(
        recipe_id, {"extendedIngredients": [], "nutrition": None}
    )

    resp = client.post(f"/api/recipes/{recipe_id}/nutrition", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "NO_INGREDIENTS"
