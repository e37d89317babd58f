"""
Database Module for the Blog Backend

This module handles all communication with the hosted Supabase project: the
posts, categories, comments and newsletter_subscribers tables, the photo
bucket, the auth service and the email functions. Every client exception is
translated into the error taxonomy from utils.exceptions so callers can
decide on retries by type instead of by message.
"""

import json
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
from supabase import Client, create_client
from supabase_auth.errors import AuthRetryableError

from config import settings
from data.models import AdminUser, AuthSession
from utils.exceptions import (
    AuthError,
    BlogError,
    ConfigurationError,
    DatabaseError,
    DuplicateError,
    NotFoundError,
    QueryError,
    StorageError,
    TransientError,
)
from utils.helpers import safe_get, status_code_of
from utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# PostgREST / Postgres codes that mean the request was refused by policy
AUTH_ERROR_CODES = {"42501", "PGRST301", "PGRST302"}
UNIQUE_VIOLATION_CODE = "23505"
NO_ROWS_CODE = "PGRST116"


def _error_payload(error: BaseException) -> Dict[str, Any]:
    # storage3 raises StorageException(dict) with statusCode/error/message
    if error.args and isinstance(error.args[0], dict):
        return error.args[0]
    return {}


def _error_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if not message:
        payload = _error_payload(error)
        message = payload.get("message") or payload.get("error")
    return str(message or error)


def _error_status(error: BaseException) -> Optional[int]:
    status = status_code_of(error)
    if status is None:
        value = _error_payload(error).get("statusCode")
        if isinstance(value, int):
            status = value
        elif isinstance(value, str) and value.isdigit():
            status = int(value)
    return status


def translate_error(error: BaseException, context: str,
                    default: type = QueryError) -> BlogError:
    """
    Convert a client exception into the blog error taxonomy.

    Args:
        error: The exception raised by the Supabase client
        context: Human-readable prefix naming the failed step
        default: Error class used when nothing more specific applies

    Returns:
        BlogError: The translated error, with message "<context>: <cause>"
    """
    if isinstance(error, BlogError):
        return error

    message = f"{context}: {_error_message(error)}"

    # supabase-auth reports network failures as AuthRetryableError with status 0
    if isinstance(error, AuthRetryableError):
        return TransientError(message)
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return TransientError(message)

    code = getattr(error, "code", None)
    code = str(code) if code is not None else None
    status = _error_status(error)

    if status is not None and 500 <= status < 600:
        return TransientError(message, status_code=status)
    if code in AUTH_ERROR_CODES or status in (401, 403):
        return AuthError(message)
    if code == UNIQUE_VIOLATION_CODE:
        return DuplicateError(message)
    if code == NO_ROWS_CODE:
        return NotFoundError(message)
    return default(message)


class SupabaseStore:
    """Remote data store backed by a Supabase project."""

    def __init__(self, client: Client, bucket: str = settings.STORAGE_BUCKET):
        """
        Initialize the store.

        Args:
            client: A configured supabase Client
            bucket: Name of the public photo bucket
        """
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, key: Optional[str] = None) -> "SupabaseStore":
        """
        Create a store from the configured project URL and key.

        Args:
            key: API key to use; defaults to the anon key

        Raises:
            ConfigurationError: If the URL or key is missing
        """
        key = key or settings.SUPABASE_ANON_KEY
        if not settings.SUPABASE_URL or not key:
            raise ConfigurationError("Missing Supabase environment variables: SUPABASE_URL and an API key are required")
        logger.info(f"Connecting to Supabase project at {settings.SUPABASE_URL}")
        return cls(create_client(settings.SUPABASE_URL, key), bucket=settings.STORAGE_BUCKET)

    def _run(self, call: Callable[[], T], context: str, default: type = QueryError) -> T:
        try:
            return call()
        except Exception as e:
            raise translate_error(e, context, default) from e

    def _table(self, name: str):
        return self.client.table(name)

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    # -------------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------------

    def list_posts(self, category_id: Optional[str] = None, start: Optional[int] = None,
                   end: Optional[int] = None) -> List[Dict[str, Any]]:
        query = self._table(settings.POSTS_TABLE).select(settings.POST_COLUMNS).order("created_at", desc=True)
        if category_id is not None:
            query = query.contains("category_ids", [category_id])
        if start is not None and end is not None:
            query = query.range(start, end)
        response = self._run(query.execute, "Failed to fetch posts")
        return response.data or []

    def count_posts(self) -> int:
        query = self._table(settings.POSTS_TABLE).select("id", count="exact", head=True)
        response = self._run(query.execute, "Failed to count posts")
        return response.count or 0

    def get_post(self, post_id: str) -> Dict[str, Any]:
        query = self._table(settings.POSTS_TABLE).select(settings.POST_COLUMNS).eq("id", post_id).limit(1)
        response = self._run(query.execute, "Failed to fetch post")
        if not response.data:
            raise NotFoundError(f"Post {post_id} not found")
        return response.data[0]

    def insert_post(self, row: Dict[str, Any]) -> Dict[str, Any]:
        query = self._table(settings.POSTS_TABLE).insert(row)
        response = self._run(query.execute, "Failed to create post")
        if not response.data:
            raise QueryError("Failed to create post: no row returned")
        return response.data[0]

    def update_post(self, post_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        query = self._table(settings.POSTS_TABLE).update(fields).eq("id", post_id)
        response = self._run(query.execute, "Failed to update post")
        if not response.data:
            raise NotFoundError(f"Post {post_id} not found")
        return response.data[0]

    def delete_post(self, post_id: str) -> None:
        query = self._table(settings.POSTS_TABLE).delete().eq("id", post_id)
        self._run(query.execute, "Failed to delete post")

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def list_categories(self) -> List[Dict[str, Any]]:
        query = self._table(settings.CATEGORIES_TABLE).select("*").order("name")
        response = self._run(query.execute, "Failed to fetch categories")
        return response.data or []

    def insert_category(self, row: Dict[str, Any]) -> Dict[str, Any]:
        query = self._table(settings.CATEGORIES_TABLE).insert(row)
        response = self._run(query.execute, "Failed to create category")
        if not response.data:
            raise QueryError("Failed to create category: no row returned")
        return response.data[0]

    def update_category(self, category_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        query = self._table(settings.CATEGORIES_TABLE).update(fields).eq("id", category_id)
        response = self._run(query.execute, "Failed to update category")
        if not response.data:
            raise NotFoundError(f"Category {category_id} not found")
        return response.data[0]

    def delete_category(self, category_id: str) -> None:
        query = self._table(settings.CATEGORIES_TABLE).delete().eq("id", category_id)
        self._run(query.execute, "Failed to delete category")

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    def list_comments(self, post_id: str) -> List[Dict[str, Any]]:
        query = self._table(settings.COMMENTS_TABLE).select("*").eq("post_id", post_id).order("created_at")
        response = self._run(query.execute, "Failed to fetch comments")
        return response.data or []

    def insert_comment(self, row: Dict[str, Any]) -> Dict[str, Any]:
        query = self._table(settings.COMMENTS_TABLE).insert(row)
        response = self._run(query.execute, "Failed to create comment")
        if not response.data:
            raise QueryError("Failed to create comment: no row returned")
        return response.data[0]

    def delete_comment(self, comment_id: str) -> None:
        query = self._table(settings.COMMENTS_TABLE).delete().eq("id", comment_id)
        self._run(query.execute, "Failed to delete comment")

    # -------------------------------------------------------------------------
    # Newsletter subscribers
    # -------------------------------------------------------------------------

    def find_subscriber(self, email: str) -> Optional[Dict[str, Any]]:
        # The table has no public select policy; subscriber_status is security definer
        query = self.client.rpc("subscriber_status", {"p_email": email})
        response = self._run(query.execute, "Failed to check subscription")
        rows = response.data or []
        if isinstance(rows, dict):
            return rows
        return rows[0] if rows else None

    def insert_subscriber(self, row: Dict[str, Any]) -> None:
        query = self._table(settings.SUBSCRIBERS_TABLE).insert(row, returning="minimal")
        self._run(query.execute, "Failed to subscribe")

    def update_subscriber(self, email: str, fields: Dict[str, Any]) -> None:
        query = self._table(settings.SUBSCRIBERS_TABLE).update(fields, returning="minimal").eq("email", email)
        self._run(query.execute, "Failed to update subscription")

    def list_active_subscribers(self) -> List[Dict[str, Any]]:
        query = (self._table(settings.SUBSCRIBERS_TABLE).select("*")
                 .eq("is_active", True).order("subscribed_at", desc=True))
        response = self._run(query.execute, "Failed to fetch subscribers")
        return response.data or []

    def count_active_subscribers(self) -> int:
        query = self._table(settings.SUBSCRIBERS_TABLE).select("id", count="exact", head=True).eq("is_active", True)
        response = self._run(query.execute, "Failed to get subscriber count")
        return response.count or 0

    # -------------------------------------------------------------------------
    # Blob storage
    # -------------------------------------------------------------------------

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        self._run(
            lambda: self._bucket().upload(path, content, file_options={"content-type": content_type}),
            "Failed to upload photo", StorageError,
        )

    def get_public_url(self, path: str) -> str:
        url = self._run(lambda: self._bucket().get_public_url(path), "Failed to get photo URL", StorageError)
        # Some client versions append an empty query string
        return url.rstrip("?")

    def remove(self, paths: List[str]) -> None:
        self._run(lambda: self._bucket().remove(paths), "Failed to delete photos", StorageError)

    def download(self, path: str) -> bytes:
        return self._run(lambda: self._bucket().download(path), "Failed to download photo", StorageError)

    def list_files(self, prefix: str = "", limit: int = 100) -> List[Dict[str, Any]]:
        return self._run(
            lambda: self._bucket().list(prefix, {"limit": limit}),
            "Failed to list photos", StorageError,
        ) or []

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_session(session: Any) -> Optional[AuthSession]:
        if session is None:
            return None
        user = safe_get(session, "user")
        return AuthSession(
            access_token=safe_get(session, "access_token", default=""),
            refresh_token=safe_get(session, "refresh_token"),
            expires_at=safe_get(session, "expires_at"),
            user=AdminUser(id=str(safe_get(user, "id", default="")), email=safe_get(user, "email")),
        )

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = self._run(
            lambda: self.client.auth.sign_in_with_password({"email": email, "password": password}),
            "Login failed", AuthError,
        )
        session = self._to_session(safe_get(response, "session"))
        if session is None:
            raise AuthError("Login failed: no session returned")
        return session

    def sign_out(self) -> None:
        self._run(self.client.auth.sign_out, "Logout failed", AuthError)

    def get_session(self) -> Optional[AuthSession]:
        session = self._run(self.client.auth.get_session, "Failed to get session", AuthError)
        return self._to_session(session)

    def get_user(self) -> Optional[AdminUser]:
        response = self._run(self.client.auth.get_user, "Failed to get user", AuthError)
        user = safe_get(response, "user")
        if user is None:
            return None
        return AdminUser(id=str(safe_get(user, "id", default="")), email=safe_get(user, "email"))

    def on_auth_state_change(self, callback: Callable[[str, Optional[AuthSession]], None]):
        def listener(event, session):
            callback(str(event), self._to_session(session))

        return self.client.auth.on_auth_state_change(listener)

    # -------------------------------------------------------------------------
    # Functions
    # -------------------------------------------------------------------------

    def invoke_function(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = self._run(
            lambda: self.client.functions.invoke(name, invoke_options={"body": body, "responseType": "json"}),
            f"Failed to invoke function {name}", DatabaseError,
        )
        if isinstance(response, (bytes, str)):
            response = json.loads(response) if response else {}
        return response or {}


# Shared store instances, created on first use
_store = None
_service_store = None


def get_store():
    """
    Return the process-wide store.

    Uses the in-memory store when BLOG_USE_IN_MEMORY_BACKEND is set, otherwise
    the hosted Supabase project with the anon key.
    """
    global _store
    if _store is None:
        if settings.USE_IN_MEMORY_BACKEND:
            from data.memory_store import InMemoryStore
            logger.info("Using in-memory backend")
            _store = InMemoryStore(bucket=settings.STORAGE_BUCKET)
        else:
            _store = SupabaseStore.from_settings()
    return _store


def get_service_store():
    """
    Return a store authenticated with the service-role key, for server-side jobs.

    Raises:
        ConfigurationError: If the service-role key is not configured
    """
    global _service_store
    if settings.USE_IN_MEMORY_BACKEND:
        return get_store()
    if _service_store is None:
        if not settings.SUPABASE_SERVICE_ROLE_KEY:
            raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY is required for server-side jobs")
        _service_store = SupabaseStore.from_settings(settings.SUPABASE_SERVICE_ROLE_KEY)
    return _service_store


def reset_stores() -> None:
    """Forget the shared store instances (used by tests)."""
    global _store, _service_store
    _store = None
    _service_store = None
