from __future__ import annotations

import logging

from fastapi import Request

from ..errors import ApiError
from .tokens import InvalidToken, verify_id_token

logger = logging.getLogger(__name__)


def require_user(request: Request) -> dict:
    """Raise 401 unless the request carries a valid bearer ID token."""
    header = request.headers.get("authorization", "")
    if not header.startswith("Bearer "):
        raise ApiError(401, "No token provided", "UNAUTHORIZED")

    try:
        claims = verify_id_token(header[len("Bearer "):])
    except InvalidToken as exc:
        logger.info("Token verification failed: %s", exc)
        raise ApiError(401, "Invalid or expired token", "INVALID_TOKEN") from exc

    return {"uid": claims["uid"], "email": claims["email"], "username": claims["name"]}
