from __future__ import annotations

from typing import Any

from pydantic import BaseModel

# Required fields are checked by the service so that missing values produce
# the API's own 400 error codes instead of a generic 422.


class UsernameCheckRequest(BaseModel):
    username: str | None = None


class RegisterRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    username: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class RefreshRequest(BaseModel):
    refreshToken: str | None = None


class UpdateAccountRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    username: str | None = None


class FavoritesRequest(BaseModel):
    favoriteIds: Any = None


class LoginResponse(BaseModel):
    success: bool = True
    uid: str
    idToken: str
    refreshToken: str
    email: str
    username: str | None
    message: str = "Login successful"
