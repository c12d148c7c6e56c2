from __future__ import annotations

import base64
import hashlib
import re
import threading
import uuid
from typing import Any

import bcrypt

from ..store.documents import server_timestamp
from .config import DEFAULT_AUTH_CONFIG

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_accounts: dict[str, dict[str, Any]] = {}
_lock = threading.Lock()


class AuthError(Exception):
    """Account operation failure carrying an ``auth/...`` error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


def _digest(plain: str) -> bytes:
    # bcrypt only accepts 72 bytes; hash first so every password fits.
    return base64.b64encode(hashlib.sha256(plain.encode()).digest())


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(_digest(plain), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(_digest(plain), hashed.encode())


def _public(uid: str, record: dict[str, Any]) -> dict[str, Any]:
    return {"uid": uid, "email": record["email"], "displayName": record.get("display_name")}


def _check_email(email: str, exclude_uid: str | None = None) -> str:
    email = email.strip().lower()
    if not _EMAIL_RE.match(email):
        raise AuthError("auth/invalid-email", "The email address is improperly formatted.")
    for uid, record in _accounts.items():
        if record["email"] == email and uid != exclude_uid:
            raise AuthError(
                "auth/email-already-exists",
                "The email address is already in use by another account.",
            )
    return email


def _check_password(password: str) -> None:
    if len(password) < DEFAULT_AUTH_CONFIG.min_password_length:
        raise AuthError(
            "auth/invalid-password",
            f"The password must be a string with at least "
            f"{DEFAULT_AUTH_CONFIG.min_password_length} characters.",
        )


def create_user(email: str, password: str, display_name: str | None = None) -> dict[str, Any]:
    """Create an account. Returns ``{uid, email, displayName}``."""
    _check_password(password)
    with _lock:
        email = _check_email(email)
        uid = uuid.uuid4().hex
        _accounts[uid] = {
            "email": email,
            "password_hash": _hash_password(password),
            "display_name": display_name,
            "created_at": server_timestamp(),
        }
        return _public(uid, _accounts[uid])


def get_user(uid: str) -> dict[str, Any] | None:
    record = _accounts.get(uid)
    return _public(uid, record) if record else None


def authenticate(email: str, password: str) -> dict[str, Any] | None:
    """Verify credentials. Returns the public account record or ``None``."""
    email = email.strip().lower()
    for uid, record in list(_accounts.items()):
        if record["email"] == email:
            if _verify_password(password, record["password_hash"]):
                return _public(uid, record)
            return None
    return None


def update_user(
    uid: str,
    email: str | None = None,
    password: str | None = None,
    display_name: str | None = None,
) -> dict[str, Any]:
    with _lock:
        record = _accounts.get(uid)
        if record is None:
            raise AuthError("auth/user-not-found", "There is no user record for this uid.")
        changes: dict[str, Any] = {}
        if email:
            changes["email"] = _check_email(email, exclude_uid=uid)
        if password:
            _check_password(password)
            changes["password_hash"] = _hash_password(password)
        if display_name:
            changes["display_name"] = display_name
        record.update(changes)
        return _public(uid, record)


def delete_user(uid: str) -> None:
    with _lock:
        if _accounts.pop(uid, None) is None:
            raise AuthError("auth/user-not-found", "There is no user record for this uid.")


def clear_users() -> None:
    with _lock:
        _accounts.clear()
