"""
In-memory implementation of the blog store protocols.

Used for local development (BLOG_USE_IN_MEMORY_BACKEND=true) and tests. The
row-level security rules of the hosted schema are enforced here explicitly:
posts, categories and photo uploads require a signed-in session, comments are
public, subscribers can be added and updated publicly but only listed by the
administrator.
"""

import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from config import settings
from data.models import AdminUser, AuthSession
from utils.exceptions import AuthError, DuplicateError, NotFoundError, StorageError


class InMemorySubscription:
    """Unsubscribe handle for auth state callbacks."""

    def __init__(self, callbacks: List[Callable], callback: Callable):
        self._callbacks = callbacks
        self._callback = callback

    def unsubscribe(self) -> None:
        if self._callback in self._callbacks:
            self._callbacks.remove(self._callback)


class InMemoryStore:
    """Simple in-memory store for development and tests."""

    def __init__(self, admin_email: str = "admin@example.com", admin_password: str = "password",
                 bucket: str = settings.STORAGE_BUCKET, base_url: str = "https://memory.local"):
        self.admin_email = admin_email
        self.admin_password = admin_password
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.admin_user = AdminUser(id=uuid.uuid4().hex, email=admin_email)
        self.function_responses: Dict[str, Any] = {}
        self.reset()

    def reset(self) -> None:
        self.posts: Dict[str, Dict[str, Any]] = {}
        self.categories: Dict[str, Dict[str, Any]] = {}
        self.comments: Dict[str, Dict[str, Any]] = {}
        self.subscribers: Dict[str, Dict[str, Any]] = {}
        self.blobs: Dict[str, bytes] = {}
        self.invocations: List[tuple] = []
        self.session: Optional[AuthSession] = None
        self._callbacks: List[Callable] = []
        self._last_timestamp: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _now(self) -> str:
        # Strictly increasing so created_at ordering is total
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()

    def _require_session(self, table: str) -> None:
        if self.session is None:
            raise AuthError(f'new row violates row-level security policy for table "{table}"')

    def _notify(self, event: str) -> None:
        for callback in list(self._callbacks):
            callback(event, self.session)

    # -------------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------------

    def list_posts(self, category_id: Optional[str] = None, start: Optional[int] = None,
                   end: Optional[int] = None) -> List[Dict[str, Any]]:
        rows = [r for r in self.posts.values()
                if category_id is None or category_id in (r.get("category_ids") or [])]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        if start is not None:
            rows = rows[start:] if end is None else rows[start:end + 1]
        return copy.deepcopy(rows)

    def count_posts(self) -> int:
        return len(self.posts)

    def get_post(self, post_id: str) -> Dict[str, Any]:
        if post_id not in self.posts:
            raise NotFoundError(f"Post {post_id} not found")
        return copy.deepcopy(self.posts[post_id])

    def insert_post(self, row: Dict[str, Any]) -> Dict[str, Any]:
        self._require_session(settings.POSTS_TABLE)
        now = self._now()
        stored = {
            "id": uuid.uuid4().hex,
            "photo_urls": [],
            "cover_image_url": None,
            "cover_image_position": dict(settings.DEFAULT_COVER_POSITION),
            "category_ids": [],
            **copy.deepcopy(row),
            "created_at": now,
            "updated_at": now,
        }
        self.posts[stored["id"]] = stored
        return copy.deepcopy(stored)

    def update_post(self, post_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self._require_session(settings.POSTS_TABLE)
        if post_id not in self.posts:
            raise NotFoundError(f"Post {post_id} not found")
        stored = self.posts[post_id]
        stored.update(copy.deepcopy(fields))
        stored["updated_at"] = self._now()
        return copy.deepcopy(stored)

    def delete_post(self, post_id: str) -> None:
        self._require_session(settings.POSTS_TABLE)
        self.posts.pop(post_id, None)
        # comments.post_id references posts(id) ON DELETE CASCADE
        for comment_id in [c for c, row in self.comments.items() if row["post_id"] == post_id]:
            del self.comments[comment_id]

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def list_categories(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(sorted(self.categories.values(), key=lambda r: r["name"]))

    def _check_category_unique(self, fields: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        for row in self.categories.values():
            if row["id"] == exclude_id:
                continue
            for column in ("name", "slug"):
                if column in fields and row[column] == fields[column]:
                    raise DuplicateError(
                        f'duplicate key value violates unique constraint "categories_{column}_key"'
                    )

    def insert_category(self, row: Dict[str, Any]) -> Dict[str, Any]:
        self._require_session(settings.CATEGORIES_TABLE)
        self._check_category_unique(row)
        stored = {
            "id": uuid.uuid4().hex,
            "color": settings.DEFAULT_CATEGORY_COLOR,
            **copy.deepcopy(row),
            "created_at": self._now(),
        }
        self.categories[stored["id"]] = stored
        return copy.deepcopy(stored)

    def update_category(self, category_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self._require_session(settings.CATEGORIES_TABLE)
        if category_id not in self.categories:
            raise NotFoundError(f"Category {category_id} not found")
        self._check_category_unique(fields, exclude_id=category_id)
        self.categories[category_id].update(copy.deepcopy(fields))
        return copy.deepcopy(self.categories[category_id])

    def delete_category(self, category_id: str) -> None:
        # Posts keep their category ids; there is no cascade
        self._require_session(settings.CATEGORIES_TABLE)
        self.categories.pop(category_id, None)

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    def list_comments(self, post_id: str) -> List[Dict[str, Any]]:
        rows = [r for r in self.comments.values() if r["post_id"] == post_id]
        return copy.deepcopy(sorted(rows, key=lambda r: r["created_at"]))

    def insert_comment(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if row.get("post_id") not in self.posts:
            raise NotFoundError(
                'insert or update on table "comments" violates foreign key constraint "comments_post_id_fkey"'
            )
        stored = {"id": uuid.uuid4().hex, **copy.deepcopy(row), "created_at": self._now()}
        self.comments[stored["id"]] = stored
        return copy.deepcopy(stored)

    def delete_comment(self, comment_id: str) -> None:
        self.comments.pop(comment_id, None)

    # -------------------------------------------------------------------------
    # Newsletter subscribers
    # -------------------------------------------------------------------------

    def find_subscriber(self, email: str) -> Optional[Dict[str, Any]]:
        row = self.subscribers.get(email)
        return copy.deepcopy(row) if row else None

    def insert_subscriber(self, row: Dict[str, Any]) -> None:
        if row["email"] in self.subscribers:
            raise DuplicateError(
                'duplicate key value violates unique constraint "newsletter_subscribers_email_key"'
            )
        self.subscribers[row["email"]] = {
            "id": uuid.uuid4().hex,
            "is_active": True,
            **copy.deepcopy(row),
            "subscribed_at": self._now(),
        }

    def update_subscriber(self, email: str, fields: Dict[str, Any]) -> None:
        if email in self.subscribers:
            self.subscribers[email].update(copy.deepcopy(fields))

    def list_active_subscribers(self) -> List[Dict[str, Any]]:
        self._require_session(settings.SUBSCRIBERS_TABLE)
        rows = [r for r in self.subscribers.values() if r["is_active"]]
        return copy.deepcopy(sorted(rows, key=lambda r: r["subscribed_at"], reverse=True))

    def count_active_subscribers(self) -> int:
        self._require_session(settings.SUBSCRIBERS_TABLE)
        return sum(1 for r in self.subscribers.values() if r["is_active"])

    # -------------------------------------------------------------------------
    # Blob storage
    # -------------------------------------------------------------------------

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        if self.session is None:
            raise AuthError("Failed to upload photo: new row violates row-level security policy")
        if path in self.blobs:
            raise StorageError(f"Failed to upload photo: The resource already exists: {path}")
        self.blobs[path] = bytes(content)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def remove(self, paths: List[str]) -> None:
        if self.session is None:
            raise AuthError("Failed to delete photos: new row violates row-level security policy")
        for path in paths:
            self.blobs.pop(path, None)

    def download(self, path: str) -> bytes:
        if path not in self.blobs:
            raise StorageError(f"Failed to download photo: Object not found: {path}")
        return self.blobs[path]

    def list_files(self, prefix: str = "", limit: int = 100) -> List[Dict[str, Any]]:
        names = sorted(p for p in self.blobs if p.startswith(prefix))
        return [{"name": name} for name in names[:limit]]

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        if email != self.admin_email or password != self.admin_password:
            raise AuthError("Login failed: Invalid login credentials")
        self.session = AuthSession(
            access_token=uuid.uuid4().hex,
            refresh_token=uuid.uuid4().hex,
            expires_at=int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()),
            user=self.admin_user,
        )
        self._notify("SIGNED_IN")
        return self.session

    def sign_out(self) -> None:
        self.session = None
        self._notify("SIGNED_OUT")

    def refresh_session(self) -> AuthSession:
        if self.session is None:
            raise AuthError("Auth session missing!")
        self.session = AuthSession(
            access_token=uuid.uuid4().hex,
            refresh_token=uuid.uuid4().hex,
            expires_at=int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp()),
            user=self.session.user,
        )
        self._notify("TOKEN_REFRESHED")
        return self.session

    def get_session(self) -> Optional[AuthSession]:
        return self.session

    def get_user(self) -> Optional[AdminUser]:
        return self.session.user if self.session else None

    def on_auth_state_change(self, callback: Callable[[str, Optional[AuthSession]], None]) -> InMemorySubscription:
        self._callbacks.append(callback)
        return InMemorySubscription(self._callbacks, callback)

    # -------------------------------------------------------------------------
    # Functions
    # -------------------------------------------------------------------------

    def invoke_function(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self.invocations.append((name, copy.deepcopy(body)))
        response = self.function_responses.get(name, {"message": "ok"})
        if isinstance(response, Exception):
            raise response
        return copy.deepcopy(response)
