"""Signed bearer tokens for API clients.

An ID token proves who the caller is for ``id_token_ttl`` seconds; a refresh
token can be traded for a fresh pair until it expires. Both are signed with
``token_secret`` and only stay valid while the account exists.
"""
from __future__ import annotations

from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from . import users
from .config import DEFAULT_AUTH_CONFIG, AuthConfig

_ID_SALT = "savr.id-token"
_REFRESH_SALT = "savr.refresh-token"


class InvalidToken(Exception):
    pass


def _serializer(config: AuthConfig, salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(config.token_secret, salt=salt)


def issue_tokens(uid: str, config: AuthConfig = DEFAULT_AUTH_CONFIG) -> tuple[str, str]:
    """Return ``(id_token, refresh_token)`` for ``uid``."""
    id_token = _serializer(config, _ID_SALT).dumps({"uid": uid})
    refresh_token = _serializer(config, _REFRESH_SALT).dumps({"uid": uid})
    return id_token, refresh_token


def _load(token: str, salt: str, max_age: int, config: AuthConfig) -> dict[str, Any]:
    try:
        payload = _serializer(config, salt).loads(token, max_age=max_age)
    except SignatureExpired as exc:
        raise InvalidToken("Token has expired") from exc
    except BadSignature as exc:
        raise InvalidToken("Token signature is invalid") from exc

    account = users.get_user(payload.get("uid", ""))
    if account is None:
        raise InvalidToken("Token refers to a deleted account")
    return account


def verify_id_token(token: str, config: AuthConfig = DEFAULT_AUTH_CONFIG) -> dict[str, Any]:
    """Return ``{uid, email, name}`` for a valid ID token."""
    account = _load(token, _ID_SALT, config.id_token_ttl, config)
    return {"uid": account["uid"], "email": account["email"], "name": account["displayName"]}


def verify_refresh_token(token: str, config: AuthConfig = DEFAULT_AUTH_CONFIG) -> str:
    account = _load(token, _REFRESH_SALT, config.refresh_token_ttl, config)
    return account["uid"]
