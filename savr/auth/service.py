from __future__ import annotations

import logging
from typing import Any

from ..errors import ApiError
from ..store.documents import get_store, server_timestamp
from . import tokens, users
from .users import AuthError

logger = logging.getLogger(__name__)

USERS_COLL = "users"
USERNAMES_COLL = "usernames"


def is_username_available(username: str | None) -> bool:
    if not username:
        raise ApiError(400, "Username is required")
    return not get_store().collection(USERNAMES_COLL).exists(username)


def register(email: str | None, password: str | None, username: str | None) -> str:
    """Create the auth account plus the user and username documents. Returns the uid."""
    if not email or not password or not username:
        raise ApiError(400, "Email, password, and username are required", "MISSING_FIELDS")

    store = get_store()
    if store.collection(USERNAMES_COLL).exists(username):
        raise ApiError(400, "Username is already taken", "USERNAME_TAKEN")

    try:
        account = users.create_user(email, password, display_name=username)
    except AuthError as exc:
        raise ApiError(400, str(exc), exc.code) from exc

    uid = account["uid"]
    now = server_timestamp()
    batch = store.batch()
    batch.set(USERS_COLL, uid, {
        "email": account["email"],
        "username": username,
        "createdAt": now,
        "updatedAt": now,
    })
    batch.set(USERNAMES_COLL, username, {"uid": uid, "createdAt": now})
    try:
        batch.commit()
    except Exception as exc:
        try:
            users.delete_user(uid)
        except AuthError:
            logger.error("Rollback failed (delete_user %s)", uid, exc_info=True)
        raise ApiError(400, str(exc), "UNKNOWN_ERROR") from exc

    logger.info("Registered user %s (%s)", uid, username)
    return uid


def login(email: str | None, password: str | None) -> dict[str, Any]:
    if not email or not password:
        raise ApiError(400, "Email and password are required", "MISSING_FIELDS")

    account = users.authenticate(email, password)
    if account is None:
        raise ApiError(400, "INVALID_LOGIN_CREDENTIALS", "INVALID_LOGIN_CREDENTIALS")

    id_token, refresh_token = tokens.issue_tokens(account["uid"])
    return {
        "uid": account["uid"],
        "idToken": id_token,
        "refreshToken": refresh_token,
        "email": account["email"],
        "username": account["displayName"],
    }


def refresh(refresh_token: str | None) -> dict[str, Any]:
    if not refresh_token:
        raise ApiError(400, "refreshToken is required", "MISSING_FIELDS")
    try:
        uid = tokens.verify_refresh_token(refresh_token)
    except tokens.InvalidToken as exc:
        raise ApiError(401, str(exc), "INVALID_REFRESH_TOKEN") from exc

    id_token, new_refresh = tokens.issue_tokens(uid)
    return {"uid": uid, "idToken": id_token, "refreshToken": new_refresh}


def update_account(
    uid: str,
    email: str | None = None,
    password: str | None = None,
    username: str | None = None,
) -> None:
    store = get_store()
    user_docs = store.collection(USERS_COLL)
    current = user_docs.get(uid)
    if current is None:
        raise ApiError(404, "User data not found", "USER_NOT_FOUND")

    current_username = current.get("username")
    username_changed = bool(username) and username != current_username
    if username_changed and store.collection(USERNAMES_COLL).exists(username):
        raise ApiError(400, "Username is already taken", "USERNAME_TAKEN")

    try:
        account = users.update_user(uid, email=email, password=password, display_name=username)
    except AuthError as exc:
        raise ApiError(400, str(exc), exc.code) from exc

    changes: dict[str, Any] = {}
    if email:
        changes["email"] = account["email"]
    if username:
        changes["username"] = username
    if changes:
        changes["updatedAt"] = server_timestamp()
        user_docs.set(uid, changes, merge=True)

    if username_changed:
        batch = store.batch()
        if current_username:
            batch.delete(USERNAMES_COLL, current_username)
        batch.set(USERNAMES_COLL, username, {"uid": uid, "createdAt": server_timestamp()})
        batch.commit()


def update_favorites(uid: str, favorite_ids: Any) -> None:
    if not isinstance(favorite_ids, list):
        raise ApiError(400, "Favorite IDs must be an array", "INVALID_REQUEST")

    user_docs = get_store().collection(USERS_COLL)
    if not user_docs.exists(uid):
        raise ApiError(404, "User data not found", "USER_NOT_FOUND")
    user_docs.update(uid, {"favoriteIds": favorite_ids, "updatedAt": server_timestamp()})


def get_favorites(uid: str) -> list[Any]:
    data = get_store().collection(USERS_COLL).get(uid)
    if data is None:
        return []
    favorites = data.get("favoriteIds")
    return favorites if isinstance(favorites, list) else []


def delete_account(uid: str) -> None:
    store = get_store()
    data = store.collection(USERS_COLL).get(uid)
    if data is None:
        raise ApiError(404, "User data not found", "USER_NOT_FOUND")

    batch = store.batch()
    batch.delete(USERS_COLL, uid)
    if data.get("username"):
        batch.delete(USERNAMES_COLL, data["username"])
    batch.commit()

    try:
        users.delete_user(uid)
    except AuthError as exc:
        raise ApiError(400, str(exc), exc.code) from exc
    logger.info("Deleted account %s", uid)
