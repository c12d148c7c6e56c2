from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from ..errors import ApiError
from .cache import cache_get, cache_set, make_key
from .kroger_client import KrogerAPIError, get_kroger_client
from .models import PriceResult
from .pricing import normalize_method, round_money

logger = logging.getLogger(__name__)


def _upstream_error(message: str, exc: KrogerAPIError) -> ApiError:
    logger.error("%s: %s", message, exc.details)
    return ApiError(500, message, details=exc.details)


def _fan_out(calls: list[tuple[Any, ...]]) -> list[PriceResult]:
    """Run ``fetch_price_for_term`` for each argument tuple concurrently, keeping order."""
    client = get_kroger_client()
    if not calls:
        return []
    workers = min(client.config.max_workers, len(calls))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(client.fetch_price_for_term, *args) for args in calls]
        return [f.result() for f in futures]


def quick_location(zip_code: str | None) -> dict[str, Any]:
    if not zip_code:
        raise ApiError(400, "Missing ?zip= parameter")

    try:
        stores = get_kroger_client().find_locations(zip_code, limit=1)
    except KrogerAPIError as exc:
        raise _upstream_error("Failed to fetch store", exc) from exc

    if not stores:
        return {"error": "No stores found"}
    store = stores[0]
    return {
        "locationId": store.get("locationId"),
        "name": store.get("name"),
        "address": store.get("address"),
        "raw": store,
    }


def lookup_price(
    term: str | None,
    location_id: str | None,
    limit: int = 5,
    method: str = "median",
    include_candidates: bool = False,
) -> dict[str, Any]:
    if not term or not location_id:
        raise ApiError(
            400,
            "Missing required query params",
            details={
                "required": ["term", "locationId"],
                "example": "/api/kroger/price?term=milk&locationId=01800520",
            },
        )

    method = normalize_method(method)
    key = make_key(term, location_id, method, limit, include_candidates)
    cached = cache_get(key)
    if cached is not None:
        return cached

    client = get_kroger_client()
    try:
        result = client.fetch_price_for_term(term, location_id, limit, method, include_candidates)
    except KrogerAPIError as exc:
        raise _upstream_error("Failed to fetch product price", exc) from exc

    response: dict[str, Any] = {
        "term": term,
        "locationId": location_id,
        "method": method,
        "product": result.product.model_dump() if result.product else None,
    }
    if include_candidates:
        response["candidates"] = [c.model_dump() for c in result.candidates or []]

    cache_set(key, response, client.config.price_cache_ttl)
    return response


def price_batch(
    terms: Any,
    location_id: str | None,
    method: str = "median",
    limit: int = 5,
) -> dict[str, Any]:
    if not isinstance(terms, list) or not terms:
        raise ApiError(400, "Body must contain { terms: [] }")
    if not location_id:
        raise ApiError(400, "locationId is required")

    method = normalize_method(method)
    try:
        results = _fan_out([(str(t), location_id, limit, method, False) for t in terms])
    except KrogerAPIError as exc:
        raise _upstream_error("Failed to fetch batch prices", exc) from exc

    total = sum(r.cost for r in results if r.cost is not None)
    return {
        "success": True,
        "locationId": location_id,
        "method": method,
        "totalCost": round_money(total),
        "items": [r.to_dict() for r in results],
    }


def multi_store_price(
    term: str | None,
    zip_code: str | None,
    limit: int = 5,
    stores: int = 3,
    method: str = "median",
) -> dict[str, Any]:
    if not term or not zip_code:
        raise ApiError(400, "Missing required query params: term, zip")

    method = normalize_method(method)
    try:
        location_ids = get_kroger_client().stores_near(zip_code, stores)
        if not location_ids:
            return {"error": "No stores found near ZIP"}
        results = _fan_out([(term, loc, limit, method, False) for loc in location_ids])
    except KrogerAPIError as exc:
        raise _upstream_error("Failed to fetch multi-store prices", exc) from exc

    priced = [r for r in results if r.cost is not None]
    best = min(priced, key=lambda r: r.cost) if priced else None
    return {
        "term": term,
        "zip": zip_code,
        "method": method,
        "bestStore": best.to_dict() if best else None,
        "allStores": [r.to_dict() for r in results],
    }
