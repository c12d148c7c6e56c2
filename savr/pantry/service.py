from __future__ import annotations

from typing import Any

from ..errors import ApiError
from ..store.documents import get_store, server_timestamp

PANTRY_COLL = "pantryItems"


def add_item(uid: str, name: Any, quantity: Any = None, unit: Any = None) -> dict[str, Any]:
    name = str(name).strip() if name is not None else ""
    if not name:
        raise ApiError(400, "Item name is required")

    item = {
        "name": name,
        "quantity": quantity if quantity is not None else 1,
        "unit": unit if unit is not None else "each",
    }
    item_id = get_store().collection(PANTRY_COLL).add({
        "uid": uid,
        **item,
        "createdAt": server_timestamp(),
    })
    return {"id": item_id, **item}


def list_items(uid: str) -> list[dict[str, Any]]:
    docs = get_store().collection(PANTRY_COLL).where("uid", "==", uid).stream()
    return [d.to_dict() for d in docs]


def delete_item(uid: str, item_id: str) -> None:
    pantry = get_store().collection(PANTRY_COLL)
    data = pantry.get(item_id)
    if data is None:
        raise ApiError(404, "Item not found")
    if data.get("uid") != uid:
        raise ApiError(403, "Not authorized to delete this item")
    pantry.delete(item_id)
