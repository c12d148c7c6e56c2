"""Kroger public API client: OAuth token cache, product and location search."""
from __future__ import annotations

import logging
import threading
import time
from typing import Any

import httpx

from .config import DEFAULT_KROGER_CONFIG, KrogerConfig
from .models import PriceResult
from .pricing import build_candidate, clamp_limit, select_candidate

logger = logging.getLogger(__name__)


class KrogerAPIError(Exception):
    """Raised when a Kroger request fails. ``details`` holds the upstream body."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details if details is not None else message


def _error_details(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class KrogerClient:
    """Client for the Kroger products and locations APIs.

    The client-credentials access token is cached and shared by all threads
    using this client until ``config.token_ttl`` seconds after it was issued.
    """

    def __init__(
        self,
        config: KrogerConfig = DEFAULT_KROGER_CONFIG,
        http: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self.http = http or httpx.Client(base_url=config.api_base, timeout=config.timeout)
        self._token: str | None = None
        self._token_expires_at: float = 0.0
        self._token_lock = threading.Lock()

    def close(self) -> None:
        self.http.close()

    def get_access_token(self) -> str:
        with self._token_lock:
            now = time.monotonic()
            if self._token and now < self._token_expires_at:
                return self._token

            try:
                response = self.http.post(
                    "/connect/oauth2/token",
                    data={"grant_type": "client_credentials", "scope": self.config.scope},
                    auth=(self.config.client_id, self.config.client_secret),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise KrogerAPIError(
                    "Kroger token request failed",
                    exc.response.status_code,
                    _error_details(exc.response),
                ) from exc
            except httpx.RequestError as exc:
                raise KrogerAPIError(f"Kroger token request failed: {exc}") from exc

            self._token = response.json()["access_token"]
            self._token_expires_at = now + self.config.token_ttl
            logger.debug("Fetched new Kroger access token")
            return self._token

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        token = self.get_access_token()
        try:
            response = self.http.get(
                path, params=params, headers={"Authorization": f"Bearer {token}"}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise KrogerAPIError(
                f"Kroger request to {path} failed",
                exc.response.status_code,
                _error_details(exc.response),
            ) from exc
        except httpx.RequestError as exc:
            raise KrogerAPIError(f"Kroger request to {path} failed: {exc}") from exc
        return response.json()

    def search_products(self, term: str, location_id: str, limit: int = 5) -> list[dict[str, Any]]:
        data = self._get("/products", {
            "filter.term": term,
            "filter.locationId": location_id,
            "filter.limit": clamp_limit(limit),
        })
        return data.get("data") or []

    def find_locations(self, zip_code: str, limit: int = 1) -> list[dict[str, Any]]:
        data = self._get("/locations", {
            "filter.zipCode.near": zip_code,
            "filter.limit": limit,
        })
        return data.get("data") or []

    def stores_near(self, zip_code: str, limit: int = 3) -> list[str]:
        return [s["locationId"] for s in self.find_locations(zip_code, limit) if s.get("locationId")]

    def fetch_price_for_term(
        self,
        term: str,
        location_id: str,
        limit: int = 5,
        method: str = "median",
        include_candidates: bool = False,
    ) -> PriceResult:
        products = self.search_products(term, location_id, limit)
        if not products:
            return PriceResult(
                found=False,
                term=term,
                locationId=location_id,
                candidates=[] if include_candidates else None,
            )

        candidates = [build_candidate(p) for p in products]
        selected = select_candidate(candidates, method)
        return PriceResult(
            found=True,
            term=term,
            locationId=location_id,
            product=selected,
            cost=selected.price if selected else None,
            candidates=candidates if include_candidates else None,
        )


_client: KrogerClient | None = None


def get_kroger_client() -> KrogerClient:
    """Return the shared client, creating it on first call."""
    global _client
    if _client is None:
        _client = KrogerClient()
    return _client
