"""
Shared Test Fixtures for the Blog Backend

This module provides common fixtures used across all test modules.
Fixtures include settings overrides, an in-memory store, a mock Supabase
client with fluent query chains, HTTP response mocks, log capture, and
factories for photos and post inputs.
"""

import pytest
from unittest.mock import MagicMock, patch
from typing import Optional, Dict, Any, List
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings as real_settings
from data import database
from data.cache import FeedCache, feed_cache
from data.memory_store import InMemoryStore
from data.models import CreatePostInput, PhotoUpload


# =============================================================================
# Global Isolation
# =============================================================================

@pytest.fixture(autouse=True)
def no_retry_sleep():
    """Make retry backoff instantaneous; the mock records every requested delay."""
    with patch('utils.helpers.time.sleep') as mock_sleep:
        yield mock_sleep


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Clear the process-wide feed cache and store singletons around each test."""
    feed_cache.invalidate()
    database.reset_stores()
    yield
    feed_cache.invalidate()
    database.reset_stores()


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def mock_settings(monkeypatch):
    """
    Override config.settings with safe test values.

    Values are patched on the real settings module so every importer sees
    them, and restored after the test.

    Usage:
        def test_something(mock_settings):
            mock_settings.SITE_URL = "https://other.example.com"

    Returns:
        module: The patched settings module.
    """
    values = {
        "SUPABASE_URL": "https://test-project.supabase.co",
        "SUPABASE_ANON_KEY": "test-anon-key",
        "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
        "USE_IN_MEMORY_BACKEND": False,
        "STORAGE_BUCKET": "blog-photos",
        "SITE_TITLE": "Test Blog",
        "SITE_URL": "https://blog.example.com",
        "BREVO_API_KEY": "test-brevo-key",
        "NEWSLETTER_SENDER_EMAIL": "sender@example.com",
        "NEWSLETTER_SENDER_NAME": "Test Blog",
    }
    for name, value in values.items():
        monkeypatch.setattr(real_settings, name, value)

    class _SettingsProxy:
        def __getattr__(self, name):
            return getattr(real_settings, name)

        def __setattr__(self, name, value):
            monkeypatch.setattr(real_settings, name, value)

    yield _SettingsProxy()


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def memory_store():
    """An empty in-memory store with no session (anonymous visitor)."""
    return InMemoryStore(admin_email="admin@example.com", admin_password="secret-password")


@pytest.fixture
def admin_store(memory_store):
    """The in-memory store signed in as the administrator."""
    memory_store.sign_in_with_password("admin@example.com", "secret-password")
    return memory_store


@pytest.fixture
def fresh_cache():
    """A feed cache private to the test."""
    return FeedCache()


@pytest.fixture
def mock_supabase_client():
    """
    Mock supabase Client whose table queries chain fluently.

    Every filter/modifier method on the query returns the query itself, so
    tests configure ``query.execute`` and inspect the calls made.

    Usage:
        def test_query(mock_supabase_client):
            client, query, bucket = mock_supabase_client
            query.execute.return_value = MagicMock(data=[{'id': '1'}], count=1)

    Returns:
        tuple: (client, query, bucket)
    """
    client = MagicMock()
    query = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "contains",
                   "order", "range", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[], count=0)

    client.table.return_value = query
    client.rpc.return_value = query

    bucket = MagicMock()
    client.storage.from_.return_value = bucket

    return client, query, bucket


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log messages for assertion in tests.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    blog_logger = logging.getLogger("blog")
    original_level = blog_logger.level
    blog_logger.setLevel(logging.DEBUG)
    blog_logger.addHandler(handler)

    yield handler.records

    blog_logger.removeHandler(handler)
    blog_logger.setLevel(original_level)


# =============================================================================
# HTTP Response Fixtures
# =============================================================================

@pytest.fixture
def mock_http_response():
    """
    Factory fixture for creating mock HTTP responses.

    Usage:
        def test_http_request(mock_http_response):
            response = mock_http_response(status_code=201, json_data={'messageId': 'abc'})

    Returns:
        callable: A factory function for creating mock responses.
    """
    def _create_response(
        status_code: int = 200,
        text: str = '',
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> MagicMock:
        import json

        mock_response = MagicMock()
        mock_response.status_code = status_code
        mock_response.headers = headers or {'Content-Type': 'application/json'}
        mock_response.ok = 200 <= status_code < 300

        if text:
            mock_response.text = text
        elif json_data is not None:
            mock_response.text = json.dumps(json_data)
        else:
            mock_response.text = ''

        if json_data is not None:
            mock_response.json.return_value = json_data
        else:
            mock_response.json.side_effect = ValueError("No JSON data")

        return mock_response

    return _create_response


@pytest.fixture
def mock_requests(mock_http_response):
    """
    Mock the requests library for HTTP testing.

    Usage:
        def test_api_call(mock_requests):
            mock_requests.post.return_value = mock_requests.response(json_data={'messageId': 'm1'})

    Returns:
        MagicMock: A mock requests module with response factory attached.
    """
    with patch('requests.get') as mock_get, \
         patch('requests.post') as mock_post:

        mock_req = MagicMock()
        mock_req.get = mock_get
        mock_req.post = mock_post
        mock_req.response = mock_http_response

        yield mock_req


# =============================================================================
# Data Model Factories
# =============================================================================

@pytest.fixture
def photo_factory():
    """
    Factory fixture for creating PhotoUpload lists.

    Usage:
        photos = photo_factory(3)   # photo-0.jpg, photo-1.jpg, photo-2.jpg

    Returns:
        callable: A factory returning ``count`` photos with distinct names and content.
    """
    def _create_photos(count: int = 1, prefix: str = "photo") -> List[PhotoUpload]:
        return [
            PhotoUpload(filename=f"{prefix}-{i}.jpg", content=f"{prefix}-{i}-bytes".encode())
            for i in range(count)
        ]

    return _create_photos


@pytest.fixture
def post_input_factory(photo_factory):
    """
    Factory fixture for creating CreatePostInput objects.

    Returns:
        callable: A factory with sensible defaults for every field.
    """
    def _create_input(
        title: str = "Test Post",
        story: str = "<p>Test story</p>",
        photo_count: int = 2,
        cover_image_index: Optional[int] = None,
        category_ids: Optional[List[str]] = None,
        photos: Optional[List[PhotoUpload]] = None,
    ) -> CreatePostInput:
        return CreatePostInput(
            title=title,
            story=story,
            photos=photos if photos is not None else photo_factory(photo_count),
            cover_image_index=cover_image_index,
            category_ids=category_ids,
        )

    return _create_input
