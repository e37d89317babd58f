"""
Tests for the Supabase Store

Tests for the database module including error translation, the query
chains built for each table operation, storage and auth calls, function
invocation, and the shared store accessors.
"""

import pytest
from unittest.mock import MagicMock, patch
import httpx
from postgrest.exceptions import APIError
from supabase_auth.errors import AuthRetryableError
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings
from data import database
from data.database import SupabaseStore, get_service_store, get_store, translate_error
from data.memory_store import InMemoryStore
from utils.exceptions import (
    AuthError,
    ConfigurationError,
    DuplicateError,
    NotFoundError,
    QueryError,
    StorageError,
    TransientError,
    ValidationError,
)


def _api_error(code, message="request failed"):
    return APIError({"message": message, "code": code, "hint": None, "details": None})


@pytest.fixture
def store(mock_supabase_client):
    client, _, _ = mock_supabase_client
    return SupabaseStore(client, bucket="blog-photos")


# =============================================================================
# Error Translation Tests
# =============================================================================

class TestTranslateError:
    """Tests for mapping client exceptions onto the error taxonomy."""

    def test_blog_errors_pass_through(self):
        error = ValidationError("Title is required")
        assert translate_error(error, "Failed to create post") is error

    def test_transport_error_is_transient(self):
        result = translate_error(httpx.ConnectError("connection refused"), "Failed to fetch posts")

        assert isinstance(result, TransientError)
        assert str(result) == "Failed to fetch posts: connection refused"

    def test_timeout_is_transient(self):
        assert isinstance(translate_error(httpx.ReadTimeout("timed out"), "x"), TransientError)

    def test_auth_network_failure_is_transient(self):
        result = translate_error(AuthRetryableError("[Errno 111] Connection refused", 0), "Login failed")

        assert isinstance(result, TransientError)
        assert str(result) == "Login failed: [Errno 111] Connection refused"

    def test_gateway_code_is_transient(self):
        result = translate_error(_api_error("502", "Bad gateway"), "Failed to fetch posts")

        assert isinstance(result, TransientError)
        assert result.status_code == 502

    @pytest.mark.parametrize("code", ["42501", "PGRST301", "PGRST302"])
    def test_policy_codes_are_auth_errors(self, code):
        result = translate_error(_api_error(code, "permission denied for table posts"), "Failed to create post")

        assert isinstance(result, AuthError)
        assert str(result) == "Failed to create post: permission denied for table posts"

    def test_unique_violation(self):
        result = translate_error(_api_error("23505", "duplicate key value"), "Failed to create category")
        assert isinstance(result, DuplicateError)

    def test_no_rows(self):
        assert isinstance(translate_error(_api_error("PGRST116"), "Failed to fetch post"), NotFoundError)

    def test_other_codes_use_default(self):
        result = translate_error(_api_error("22P02", "invalid input syntax for type uuid"), "Failed to fetch post")

        assert type(result) is QueryError

    def test_storage_payload(self):
        """Storage errors carry a dict with statusCode, error and message."""
        error = Exception({"statusCode": 409, "error": "Duplicate", "message": "The resource already exists"})

        result = translate_error(error, "Failed to upload photo", StorageError)

        assert type(result) is StorageError
        assert str(result) == "Failed to upload photo: The resource already exists"

    def test_storage_payload_5xx_is_transient(self):
        error = Exception({"statusCode": "503", "message": "Service Unavailable"})

        assert isinstance(translate_error(error, "Failed to upload photo", StorageError), TransientError)

    def test_storage_payload_403_is_auth(self):
        error = Exception({"statusCode": 403, "message": "new row violates row-level security policy"})

        assert isinstance(translate_error(error, "Failed to upload photo", StorageError), AuthError)


# =============================================================================
# Table Operation Tests
# =============================================================================

class TestPostQueries:
    """Tests for the posts table query chains."""

    def test_list_posts_newest_first(self, store, mock_supabase_client):
        client, query, _ = mock_supabase_client
        query.execute.return_value = MagicMock(data=[{"id": "1"}])

        assert store.list_posts() == [{"id": "1"}]
        client.table.assert_called_with("posts")
        query.select.assert_called_with(settings.POST_COLUMNS)
        query.order.assert_called_with("created_at", desc=True)
        query.contains.assert_not_called()
        query.range.assert_not_called()

    def test_list_posts_by_category_and_range(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client

        store.list_posts(category_id="cat-1", start=9, end=17)

        query.contains.assert_called_once_with("category_ids", ["cat-1"])
        query.range.assert_called_once_with(9, 17)

    def test_list_posts_none_data(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client
        query.execute.return_value = MagicMock(data=None)

        assert store.list_posts() == []

    def test_count_posts(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client
        query.execute.return_value = MagicMock(data=[], count=7)

        assert store.count_posts() == 7
        query.select.assert_called_with("id", count="exact", head=True)

    def test_get_post_missing(self, store):
        with pytest.raises(NotFoundError, match="Post abc not found"):
            store.get_post("abc")

    def test_insert_post_returns_row(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client
        query.execute.return_value = MagicMock(data=[{"id": "new", "title": "T"}])

        assert store.insert_post({"title": "T"}) == {"id": "new", "title": "T"}
        query.insert.assert_called_once_with({"title": "T"})

    def test_update_missing_post(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client

        with pytest.raises(NotFoundError):
            store.update_post("abc", {"title": "T"})

        query.eq.assert_called_with("id", "abc")

    def test_rls_rejection_translated(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client
        query.execute.side_effect = _api_error("42501", 'new row violates row-level security policy for table "posts"')

        with pytest.raises(AuthError, match="Failed to create post: new row violates row-level security"):
            store.insert_post({"title": "T"})

    def test_network_failure_translated(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client
        query.execute.side_effect = httpx.ConnectError("connection reset")

        with pytest.raises(TransientError, match="Failed to fetch posts"):
            store.list_posts()


class TestOtherTables:

    def test_categories_ordered_by_name(self, store, mock_supabase_client):
        client, query, _ = mock_supabase_client

        store.list_categories()

        client.table.assert_called_with("categories")
        query.order.assert_called_with("name")

    def test_comments_for_post(self, store, mock_supabase_client):
        client, query, _ = mock_supabase_client

        store.list_comments("post-1")

        client.table.assert_called_with("comments")
        query.eq.assert_called_with("post_id", "post-1")
        query.order.assert_called_with("created_at")

    def test_find_subscriber_uses_rpc(self, store, mock_supabase_client):
        """Subscriber rows are not publicly readable, so lookups go through a function."""
        client, query, _ = mock_supabase_client
        query.execute.return_value = MagicMock(data=[{"email": "a@example.com", "is_active": False}])

        row = store.find_subscriber("a@example.com")

        assert row == {"email": "a@example.com", "is_active": False}
        client.rpc.assert_called_once_with("subscriber_status", {"p_email": "a@example.com"})
        client.table.assert_not_called()

    def test_find_subscriber_none(self, store):
        assert store.find_subscriber("a@example.com") is None

    def test_subscriber_writes_return_minimal(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client

        store.insert_subscriber({"email": "a@example.com", "is_active": True})
        store.update_subscriber("a@example.com", {"is_active": False})

        query.insert.assert_called_once_with({"email": "a@example.com", "is_active": True}, returning="minimal")
        query.update.assert_called_once_with({"is_active": False}, returning="minimal")
        query.eq.assert_called_with("email", "a@example.com")

    def test_count_active_subscribers(self, store, mock_supabase_client):
        _, query, _ = mock_supabase_client
        query.execute.return_value = MagicMock(count=3)

        assert store.count_active_subscribers() == 3
        query.eq.assert_called_with("is_active", True)


# =============================================================================
# Storage Tests
# =============================================================================

class TestStorage:

    def test_upload(self, store, mock_supabase_client):
        client, _, bucket = mock_supabase_client

        store.upload("post-1/1_a.jpg", b"bytes", "image/png")

        client.storage.from_.assert_called_with("blog-photos")
        bucket.upload.assert_called_once_with("post-1/1_a.jpg", b"bytes", file_options={"content-type": "image/png"})

    def test_public_url_trailing_query_removed(self, store, mock_supabase_client):
        _, _, bucket = mock_supabase_client
        bucket.get_public_url.return_value = "https://x.supabase.co/storage/v1/object/public/blog-photos/a.jpg?"

        assert store.get_public_url("a.jpg") == "https://x.supabase.co/storage/v1/object/public/blog-photos/a.jpg"

    def test_remove_failure(self, store, mock_supabase_client):
        _, _, bucket = mock_supabase_client
        bucket.remove.side_effect = Exception({"statusCode": 400, "message": "Invalid key"})

        with pytest.raises(StorageError, match="Failed to delete photos: Invalid key"):
            store.remove(["a.jpg"])

    def test_list_files(self, store, mock_supabase_client):
        _, _, bucket = mock_supabase_client
        bucket.list.return_value = [{"name": "a.jpg"}]

        assert store.list_files("", limit=1) == [{"name": "a.jpg"}]
        bucket.list.assert_called_once_with("", {"limit": 1})


# =============================================================================
# Auth and Function Tests
# =============================================================================

class TestAuth:

    def test_sign_in(self, store, mock_supabase_client):
        client, _, _ = mock_supabase_client
        user = MagicMock(id="user-1", email="admin@example.com")
        client.auth.sign_in_with_password.return_value = MagicMock(
            session=MagicMock(access_token="token", refresh_token="refresh", expires_at=100, user=user)
        )

        session = store.sign_in_with_password("admin@example.com", "pw")

        assert session.access_token == "token"
        assert session.user.id == "user-1"
        client.auth.sign_in_with_password.assert_called_once_with({"email": "admin@example.com", "password": "pw"})

    def test_sign_in_rejected(self, store, mock_supabase_client):
        client, _, _ = mock_supabase_client
        client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

        with pytest.raises(AuthError, match="Login failed: Invalid login credentials"):
            store.sign_in_with_password("admin@example.com", "bad")

    def test_sign_in_without_session(self, store, mock_supabase_client):
        client, _, _ = mock_supabase_client
        client.auth.sign_in_with_password.return_value = MagicMock(session=None)

        with pytest.raises(AuthError, match="no session returned"):
            store.sign_in_with_password("admin@example.com", "pw")

    def test_no_session(self, store, mock_supabase_client):
        client, _, _ = mock_supabase_client
        client.auth.get_session.return_value = None

        assert store.get_session() is None

    def test_auth_listener_converts_session(self, store, mock_supabase_client):
        client, _, _ = mock_supabase_client
        seen = []

        store.on_auth_state_change(lambda event, session: seen.append((event, session)))
        listener = client.auth.on_auth_state_change.call_args.args[0]
        listener("SIGNED_OUT", None)

        assert seen == [("SIGNED_OUT", None)]


class TestInvokeFunction:

    def test_json_bytes_decoded(self, store, mock_supabase_client):
        client, _, _ = mock_supabase_client
        client.functions.invoke.return_value = b'{"message": "Newsletter sent", "successful": 2}'

        response = store.invoke_function("send-newsletter", {"postId": "1"})

        assert response == {"message": "Newsletter sent", "successful": 2}
        client.functions.invoke.assert_called_once_with(
            "send-newsletter", invoke_options={"body": {"postId": "1"}, "responseType": "json"}
        )

    def test_dict_passthrough(self, store, mock_supabase_client):
        client, _, _ = mock_supabase_client
        client.functions.invoke.return_value = {"message": "ok"}

        assert store.invoke_function("send-newsletter", {}) == {"message": "ok"}


# =============================================================================
# Shared Store Tests
# =============================================================================

class TestSharedStores:
    """Tests for get_store and get_service_store."""

    def test_supabase_store_created_once(self, mock_settings):
        with patch('data.database.create_client') as mock_create:
            first = get_store()
            second = get_store()

        assert first is second
        assert isinstance(first, SupabaseStore)
        mock_create.assert_called_once_with("https://test-project.supabase.co", "test-anon-key")

    def test_in_memory_backend(self, mock_settings):
        mock_settings.USE_IN_MEMORY_BACKEND = True

        store = get_store()

        assert isinstance(store, InMemoryStore)
        assert get_service_store() is store

    def test_missing_url(self, mock_settings):
        mock_settings.SUPABASE_URL = ""

        with pytest.raises(ConfigurationError):
            get_store()

    def test_service_store_uses_service_key(self, mock_settings):
        with patch('data.database.create_client') as mock_create:
            get_service_store()

        mock_create.assert_called_once_with("https://test-project.supabase.co", "test-service-role-key")

    def test_service_store_requires_key(self, mock_settings):
        mock_settings.SUPABASE_SERVICE_ROLE_KEY = ""

        with pytest.raises(ConfigurationError, match="SUPABASE_SERVICE_ROLE_KEY"):
            get_service_store()

    def test_reset_forgets_instances(self, mock_settings):
        with patch('data.database.create_client'):
            first = get_store()
            database.reset_stores()
            assert get_store() is not first
