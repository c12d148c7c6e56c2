from __future__ import annotations

from typing import Any

from ..store.documents import get_store, server_timestamp

COLL = "external_ingredients"
CHUNK_SIZE = 400


def make_doc_id(external_source: str, ingredient_id: Any) -> str:
    """``spoonacular`` + ``1123`` -> ``spoonacular_1123``."""
    return f"{external_source}_{ingredient_id}"


def _payload(external_source: str, ingredient: dict[str, Any]) -> dict[str, Any]:
    payload = {
        "externalSource": external_source,
        "externalId": str(ingredient["id"]),
        "name": ingredient.get("name") or ingredient.get("originalName"),
        "image": ingredient.get("image"),
        "aisle": ingredient.get("aisle"),
        "consistency": ingredient.get("consistency"),
        "updatedAt": server_timestamp(),
    }
    # Keep units cached by an earlier lookup when this source has none.
    units = ingredient.get("possibleUnits")
    if isinstance(units, list) and units:
        payload["possibleUnits"] = units
    return payload


def _with_created_at(collection, doc_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    if not collection.exists(doc_id):
        payload = {"possibleUnits": [], **payload, "createdAt": payload["updatedAt"]}
    return payload


def upsert_from_external(external_source: str, ingredient: dict[str, Any]) -> str:
    if not external_source or not ingredient or not ingredient.get("id"):
        raise ValueError("Missing args for upsert_from_external (ingredient)")

    collection = get_store().collection(COLL)
    doc_id = make_doc_id(external_source, ingredient["id"])
    collection.set(
        doc_id,
        _with_created_at(collection, doc_id, _payload(external_source, ingredient)),
        merge=True,
    )
    return doc_id


def upsert_many_from_external(external_source: str, ingredients: list[dict[str, Any]]) -> int:
    """Upsert ingredients de-duplicated by id (last one wins). Returns the count written."""
    unique: dict[str, dict[str, Any]] = {}
    for ing in ingredients or []:
        if ing and ing.get("id"):
            unique[str(ing["id"])] = ing
    if not unique:
        return 0

    store = get_store()
    collection = store.collection(COLL)
    items = list(unique.values())
    upserted = 0
    for start in range(0, len(items), CHUNK_SIZE):
        batch = store.batch()
        for ing in items[start:start + CHUNK_SIZE]:
            doc_id = make_doc_id(external_source, ing["id"])
            batch.set(
                COLL,
                doc_id,
                _with_created_at(collection, doc_id, _payload(external_source, ing)),
                merge=True,
            )
            upserted += 1
        batch.commit()
    return upserted


def _to_public(doc_id: str, data: dict[str, Any], fallback_id: Any = None) -> dict[str, Any]:
    external_id = data.get("externalId", fallback_id)
    return {
        "id": int(external_id) if str(external_id).isdigit() else external_id,
        "name": data.get("name"),
        "image": data.get("image"),
        "aisle": data.get("aisle"),
        "consistency": data.get("consistency"),
        "possibleUnits": data.get("possibleUnits") or [],
        "_docId": doc_id,
        "createdAt": data.get("createdAt"),
        "updatedAt": data.get("updatedAt"),
    }


def find_by_external(external_source: str, ingredient_id: Any) -> dict[str, Any] | None:
    if not external_source or not ingredient_id:
        return None
    doc_id = make_doc_id(external_source, ingredient_id)
    data = get_store().collection(COLL).get(doc_id)
    if data is None:
        return None
    return _to_public(doc_id, data, ingredient_id)


def find_by_doc_ids(doc_ids: list[str]) -> list[dict[str, Any]]:
    """Return ``{id, **document}`` for the ids that exist, in request order."""
    collection = get_store().collection(COLL)
    found = []
    for doc_id in doc_ids:
        data = collection.get(str(doc_id))
        if data is not None:
            found.append({"id": str(doc_id), **data})
    return found
