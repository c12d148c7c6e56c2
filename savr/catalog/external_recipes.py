from __future__ import annotations

import re
from typing import Any

from ..store.documents import get_store, server_timestamp

COLL = "external_recipes"
MAX_TITLE_TOKENS = 50
MAX_QUERY_TOKENS = 10

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")

_RECIPE_FIELDS = (
    "title",
    "image",
    "sourceUrl",
    "readyInMinutes",
    "servings",
    "summary",
    "instructions",
    "extendedIngredients",
    "nutrition",
    "dishTypes",
    "diets",
    "cuisines",
)


def make_doc_id(external_source: str, external_id: Any) -> str:
    return f"{external_source}_{external_id}"


def tokenize(text: str | None, max_tokens: int = MAX_TITLE_TOKENS) -> list[str]:
    """Lower-cased alphanumeric words of ``text``, at most ``max_tokens``."""
    cleaned = _NON_ALNUM.sub(" ", (text or "").lower())
    return cleaned.split()[:max_tokens]


def _as_number(value: Any) -> float | int | None:
    if value is None:
        return None
    number = float(value)
    return int(number) if number.is_integer() else number


def find_by_external(external_source: str, external_id: Any) -> dict[str, Any] | None:
    if not external_source or not external_id:
        return None
    doc_id = make_doc_id(external_source, external_id)
    data = get_store().collection(COLL).get(doc_id)
    if data is None:
        return None

    recipe: dict[str, Any] = {"id": str(data.get("externalId", external_id))}
    for field in _RECIPE_FIELDS:
        recipe[field] = data.get(field)
    recipe["extendedIngredients"] = data.get("extendedIngredients") or []
    recipe["_docId"] = doc_id
    recipe["createdAt"] = data.get("createdAt")
    recipe["updatedAt"] = data.get("updatedAt")
    return recipe


def _summary(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    # Numeric ids keep the client's recipe routes working.
    return {
        "id": int(data["externalId"]),
        "title": data.get("title"),
        "image": data.get("image"),
        "_cached": True,
        "_docId": doc_id,
    }


def search_cached_by_title(external_source: str, q: str | None, limit: int = 10) -> list[dict[str, Any]]:
    """OR-match the query's tokens against cached titles (not ranked)."""
    query = (q or "").strip().lower()
    if not query:
        return []
    tokens = tokenize(query, MAX_QUERY_TOKENS) or [query]

    docs = (
        get_store()
        .collection(COLL)
        .where("externalSource", "==", external_source)
        .where("titleTokens", "array-contains-any", tokens)
        .limit(limit)
        .stream()
    )
    return [_summary(d.id, d.data) for d in docs]


def list_recent(external_source: str, limit: int = 10) -> list[dict[str, Any]]:
    docs = (
        get_store()
        .collection(COLL)
        .where("externalSource", "==", external_source)
        .order_by("updatedAt", descending=True)
        .limit(limit)
        .stream()
    )
    return [_summary(d.id, d.data) for d in docs]


def upsert_from_external(external_source: str, external_id: Any, simplified: dict[str, Any]) -> str:
    """Create or update a cached recipe, indexing its title for search."""
    if not external_source or not external_id or not simplified:
        raise ValueError("Missing args for upsert_from_external")

    collection = get_store().collection(COLL)
    doc_id = make_doc_id(external_source, external_id)
    title = simplified.get("title")
    now = server_timestamp()

    payload: dict[str, Any] = {
        "externalSource": external_source,
        "externalId": str(external_id),
        "titleLower": (title or "").lower(),
        "titleTokens": tokenize(title),
        "updatedAt": now,
    }
    for field in _RECIPE_FIELDS:
        payload[field] = simplified.get(field)
    payload["readyInMinutes"] = _as_number(simplified.get("readyInMinutes"))
    payload["servings"] = _as_number(simplified.get("servings"))
    payload["extendedIngredients"] = simplified.get("extendedIngredients") or []
    if not collection.exists(doc_id):
        payload["createdAt"] = now

    collection.set(doc_id, payload, merge=True)
    return doc_id
