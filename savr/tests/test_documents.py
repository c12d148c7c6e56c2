from __future__ import annotations

import pytest

from savr.store import media
from savr.store.documents import (
    MAX_BATCH_WRITES,
    BatchTooLarge,
    DocumentNotFound,
    DocumentStore,
)


def test_add_get_returns_copy():
    store = DocumentStore()
    col = store.collection("things")
    doc_id = col.add({"name": "salt", "tags": ["a"]})

    data = col.get(doc_id)
    data["tags"].append("mutated")
    assert col.get(doc_id)["tags"] == ["a"]
    assert col.get("missing") is None


def test_set_merge_and_update():
    store = DocumentStore()
    col = store.collection("things")
    col.set("x", {"a": 1, "b": 2})
    col.set("x", {"b": 3}, merge=True)
    assert col.get("x") == {"a": 1, "b": 3}

    col.set("x", {"c": 4})
    assert col.get("x") == {"c": 4}

    col.update("x", {"d": 5})
    assert col.get("x") == {"c": 4, "d": 5}


def test_update_missing_raises():
    col = DocumentStore().collection("things")
    with pytest.raises(DocumentNotFound):
        col.update("nope", {"a": 1})


def test_delete_reports_existence():
    col = DocumentStore().collection("things")
    col.set("x", {})
    assert col.delete("x") is True
    assert col.delete("x") is False


def test_create_only_writes_new_documents():
    col = DocumentStore().collection("things")
    assert col.create("x", {"a": 1}) is True
    assert col.create("x", {"a": 2}) is False
    assert col.get("x") == {"a": 1}


def test_query_filters_order_and_limit():
    col = DocumentStore().collection("recipes")
    col.set("1", {"owner": "u1", "rank": 2, "tokens": ["pasta", "tomato"]})
    col.set("2", {"owner": "u1", "rank": 5, "tokens": ["soup"]})
    col.set("3", {"owner": "u2", "rank": 9, "tokens": ["pasta"]})

    owned = col.where("owner", "==", "u1").order_by("rank", descending=True).stream()
    assert [d.id for d in owned] == ["2", "1"]

    pasta = col.where("tokens", "array-contains-any", ["pasta", "rice"]).order_by("rank").stream()
    assert [d.id for d in pasta] == ["1", "3"]

    assert [d.id for d in col.where("owner", "in", ["u2"]).stream()] == ["3"]
    assert len(col.order_by("rank").limit(2).stream()) == 2
    assert col.stream()[0].to_dict()["id"] in {"1", "2", "3"}


def test_unsupported_operator():
    with pytest.raises(ValueError):
        DocumentStore().collection("x").where("a", ">", 1)


def test_batch_is_atomic_when_update_target_missing():
    store = DocumentStore()
    batch = store.batch()
    batch.set("users", "u1", {"name": "a"})
    batch.update("users", "ghost", {"name": "b"})
    with pytest.raises(DocumentNotFound):
        batch.commit()
    assert store.collection("users").get("u1") is None


def test_batch_update_after_set_in_same_batch():
    store = DocumentStore()
    batch = store.batch()
    batch.set("users", "u1", {"name": "a"})
    batch.update("users", "u1", {"age": 3})
    batch.delete("users", "u2")
    batch.commit()
    assert store.collection("users").get("u1") == {"name": "a", "age": 3}


def test_batch_write_limit():
    batch = DocumentStore().batch()
    for i in range(MAX_BATCH_WRITES):
        batch.set("c", str(i), {})
    with pytest.raises(BatchTooLarge):
        batch.set("c", "one-too-many", {})


# ── Media ────────────────────────────────────────────────────────────────


def test_media_save_and_delete_prefix():
    url = media.save_file("users/u1/recipes/r1/thumbnail.png", b"\x89PNG")
    assert url == "/media/users/u1/recipes/r1/thumbnail.png"
    assert media.find_file("users/u1/recipes/r1/thumbnail.png").read_bytes() == b"\x89PNG"

    assert media.delete_prefix("users/u1/recipes/r1/") == 1
    assert media.find_file("users/u1/recipes/r1/thumbnail.png") is None
    assert media.delete_prefix("users/u1/recipes/r1/") == 0


def test_media_rejects_escaping_paths():
    with pytest.raises(ValueError):
        media.save_file("../outside.txt", b"x")
    assert media.find_file("/etc/passwd") is None
