"""Shared fixtures for Savr tests."""
from __future__ import annotations

import pytest
import respx

from savr.auth.users import clear_users
from savr.grocery import kroger_client
from savr.grocery.cache import clear_cache
from savr.grocery.config import KrogerConfig
from savr.spoonacular import client as spoonacular_client
from savr.spoonacular.config import SpoonacularConfig
from savr.store import media
from savr.store.config import DEFAULT_MEDIA_CONFIG, MediaConfig
from savr.store.documents import get_store

KROGER_BASE = "https://kroger.test/v1"
SPOONACULAR_BASE = "https://spoonacular.test"


@pytest.fixture(autouse=True)
def reset_state(tmp_path):
    """Every test starts with empty collections, accounts, price cache and media."""
    get_store().clear()
    clear_users()
    clear_cache()
    media.configure(MediaConfig(root=tmp_path / "media"))
    yield
    media.configure(DEFAULT_MEDIA_CONFIG)


@pytest.fixture
def mock_httpx():
    """Activate respx mock for HTTP requests."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
def kroger(monkeypatch):
    """Install a fresh Kroger client pointed at the mocked base URL."""
    config = KrogerConfig(client_id="kroger-id", client_secret="kroger-secret", api_base=KROGER_BASE)
    test_client = kroger_client.KrogerClient(config)
    monkeypatch.setattr(kroger_client, "_client", test_client)
    yield test_client
    test_client.close()


@pytest.fixture
def spoonacular(monkeypatch):
    """Install a fresh Spoonacular client pointed at the mocked base URL."""
    config = SpoonacularConfig(api_key="test-key", api_base=SPOONACULAR_BASE)
    test_client = spoonacular_client.SpoonacularClient(config)
    monkeypatch.setattr(spoonacular_client, "_client", test_client)
    yield test_client
    test_client.close()


@pytest.fixture
def kroger_token(mock_httpx, kroger):
    """Mocked OAuth endpoint returning a fixed token."""
    return mock_httpx.post(f"{KROGER_BASE}/connect/oauth2/token").respond(
        json={"access_token": "kroger-token", "expires_in": 1800},
    )
