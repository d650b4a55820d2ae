"""Pytest configuration and shared fixtures.

Provides common fixtures for:
- Temporary database paths
- Mock environment variables
- Settings and a real contact store
- Mock API clients
"""

import pytest
from pathlib import Path
import tempfile
from unittest.mock import AsyncMock


# =============================================================================
# TEMPORARY PATHS
# =============================================================================

@pytest.fixture
def temp_db_path():
    """Create a temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test_contacts.db"


@pytest.fixture
def temp_log_path():
    """Create a temporary log file path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "logs" / "test.log"


# =============================================================================
# ENVIRONMENT VARIABLES
# =============================================================================

@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables for testing.

    Both integrations are configured and enabled; retry backoff is
    zero so rate-limit retries do not slow the suite down.
    """
    monkeypatch.setenv("WOOCOMMERCE_URL", "https://shop.example.com/")
    monkeypatch.setenv("WOOCOMMERCE_CONSUMER_KEY", "ck_test_key")
    monkeypatch.setenv("WOOCOMMERCE_CONSUMER_SECRET", "cs_test_secret")
    monkeypatch.setenv("WOOCOMMERCE_SYNC_CONTACTS", "true")
    monkeypatch.setenv("CHATWOOT_URL", "https://chat.example.com")
    monkeypatch.setenv("CHATWOOT_API_KEY", "cw_test_token")
    monkeypatch.setenv("CHATWOOT_ACCOUNT_ID", "7")
    monkeypatch.setenv("CHATWOOT_CONTACTS_SYNC", "true")
    monkeypatch.setenv("CHATWOOT_CONTACTS_CRON_ENABLED", "true")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("MAX_RETRIES", "3")
    monkeypatch.setenv("RETRY_DELAY", "0")


@pytest.fixture
def mock_env_vars_unconfigured(monkeypatch):
    """Environment with no integration credentials at all."""
    for name in (
        "WOOCOMMERCE_URL",
        "WOOCOMMERCE_CONSUMER_KEY",
        "WOOCOMMERCE_CONSUMER_SECRET",
        "WOOCOMMERCE_SYNC_CONTACTS",
        "CHATWOOT_API_KEY",
        "CHATWOOT_ACCOUNT_ID",
        "CHATWOOT_CONTACTS_SYNC",
        "CHATWOOT_CONTACTS_CRON_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")


# =============================================================================
# SETTINGS AND STORE
# =============================================================================

@pytest.fixture
def mock_settings(mock_env_vars, temp_db_path):
    """Create settings with mock environment variables."""
    from erpsync.config import Settings
    return Settings(database_path=temp_db_path)


@pytest.fixture
def contact_store(temp_db_path):
    """Create a real contact store for testing."""
    from erpsync.database import ContactStore
    return ContactStore(temp_db_path)


@pytest.fixture
def make_contact_data():
    """Helper building writable contact data for the store."""
    def _make(email="jane.doe@example.com", **overrides):
        data = {
            "first_name": "Jane",
            "last_name": "Doe",
            "email": email,
            "phone": "+573001234567",
            "address": "Calle 10 # 20-30",
            "address_extra": None,
            "city_code": "Bogota",
        }
        data.update(overrides)
        return data

    return _make


# =============================================================================
# MOCK CLIENT FIXTURES
# =============================================================================

@pytest.fixture
def mock_woocommerce_client(mock_settings):
    """Create a mock WooCommerce client."""
    from erpsync.woocommerce_client import WooCommerceClient

    client = AsyncMock(spec=WooCommerceClient)
    client.settings = mock_settings
    client.validate_connection.return_value = True
    return client


@pytest.fixture
def mock_chatwoot_client(mock_settings):
    """Create a mock Chatwoot client."""
    from erpsync.chatwoot_client import ChatwootClient

    client = AsyncMock(spec=ChatwootClient)
    client.settings = mock_settings
    client.verify_credentials.return_value = True
    return client


@pytest.fixture
def order_stream():
    """Helper turning lists of pages into an async page generator."""
    def _stream(*pages, error=None):
        async def _generator(per_page=100):
            for page in pages:
                yield page
            if error is not None:
                raise error

        return _generator

    return _stream
