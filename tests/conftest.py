"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for Zen Bridge tests.
"""

import pytest
import os
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["ZENBRIDGE_LOGGING__FILE_PATH"] = ""
os.environ["ZENBRIDGE_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ["ZENBRIDGE_PROCESSING__COMPLIANCE_DELAY_SECONDS"] = "0"
os.environ["ZENBRIDGE_DEBUG"] = "true"

from tests.feed_samples import SOURCE_URL, SITE_LINK


# ============================================================================
# Settings and Database Fixtures
# ============================================================================


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing at a per-test database with no processing delay."""
    from zenbridge.config.settings import ZenBridgeSettings

    settings = ZenBridgeSettings()
    settings.database.path = str(tmp_path / "zenbridge_test.db")
    settings.database.pool_size = 2
    settings.processing.compliance_delay_seconds = 0.0
    return settings


@pytest.fixture
def store(test_settings):
    """Store backed by a fresh temp-file database."""
    from zenbridge.storage.store import Store

    store = Store.open(test_settings)
    yield store
    store.close()


@pytest.fixture
def sample_config(store):
    """Stored RSS configuration pointing at the test source feed."""
    from zenbridge.database.models import RssConfig

    return store.create_rss_config(
        RssConfig(
            source_url=SOURCE_URL,
            title="Zen Output",
            description="Output feed description",
            site_link=SITE_LINK,
        )
    )


@pytest.fixture
def make_article():
    """Factory for Article models with valid defaults."""
    from zenbridge.database.models import Article

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "title": f"Sample article number {counter['n']}",
            "link": f"https://source.example.com/posts/{counter['n']}",
            "content": "<p>" + "content " * 20 + "</p>",
            "description": "Sample description",
            "category": ["Наука"],
        }
        data.update(overrides)
        return Article(**data)

    return _make


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    calls = []

    async def _sleep(seconds):
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep
