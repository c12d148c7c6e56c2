"""Spoonacular API client for ingredient lookup, recipe search and nutrition."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import DEFAULT_SPOONACULAR_CONFIG, SpoonacularConfig

logger = logging.getLogger(__name__)

QUOTA_HEADER = "x-api-quota-left"


class SpoonacularError(Exception):
    """Raised for failed Spoonacular calls.

    ``status_code`` is the upstream status (500 when the request never got a
    response) and ``details`` the decoded upstream body, when there was one.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Any = None,
        quota_left: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details
        self.quota_left = quota_left


class SpoonacularResponse:
    def __init__(self, data: Any, quota_left: str | None) -> None:
        self.data = data
        self.quota_left = quota_left


class SpoonacularClient:
    def __init__(
        self,
        config: SpoonacularConfig = DEFAULT_SPOONACULAR_CONFIG,
        http: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self.http = http or httpx.Client(
            base_url=config.api_base,
            timeout=config.timeout,
            headers={"x-api-key": config.api_key},
        )

    def close(self) -> None:
        self.http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> SpoonacularResponse:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            raise SpoonacularError(f"Spoonacular request failed: {exc}") from exc

        quota_left = response.headers.get(QUOTA_HEADER)
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = (
                data.get("message") if isinstance(data, dict) and data.get("message")
                else "Spoonacular request failed"
            )
            logger.warning("Spoonacular %s %s -> %s: %s", method, path, response.status_code, message)
            raise SpoonacularError(message, response.status_code, data, quota_left)

        return SpoonacularResponse(data, quota_left)

    def search_ingredients(self, query: str, number: int = 10) -> SpoonacularResponse:
        return self._request(
            "GET", "/food/ingredients/search", params={"query": query, "number": number}
        )

    def ingredient_information(self, ingredient_id: str) -> SpoonacularResponse:
        return self._request("GET", f"/food/ingredients/{ingredient_id}/information")

    def search_recipes(self, query: str, number: int, offset: int = 0) -> SpoonacularResponse:
        return self._request("GET", "/recipes/complexSearch", params={
            "query": query,
            "number": number,
            "offset": offset,
            "addRecipeInformation": "false",
            "instructionsRequired": "true",
        })

    def recipe_information(self, recipe_id: str, include_nutrition: bool = True) -> SpoonacularResponse:
        return self._request(
            "GET",
            f"/recipes/{recipe_id}/information",
            params={"includeNutrition": str(include_nutrition).lower()},
        )

    def random_recipes(self, number: int) -> SpoonacularResponse:
        return self._request("GET", "/recipes/random", params={"number": number})

    def analyze_recipe(self, body: dict[str, Any]) -> SpoonacularResponse:
        return self._request(
            "POST", "/recipes/analyze", params={"includeNutrition": "true"}, json=body
        )


_client: SpoonacularClient | None = None


def get_spoonacular_client() -> SpoonacularClient:
    """Return the shared client, creating it on first call."""
    global _client
    if _client is None:
        _client = SpoonacularClient()
    return _client
