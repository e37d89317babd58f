"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for the remote store.
These protocols enable dependency injection for the services, so they work
against the hosted Supabase store or the in-memory store used in tests.

Implementations raise the error taxonomy from utils.exceptions: transient
failures as TransientError, policy denials as AuthError, missing rows as
NotFoundError, and so on.

Protocols defined:
- PostStore: posts table
- CategoryStore: categories table
- CommentStore: comments table
- SubscriberStore: newsletter_subscribers table
- BlobStorage: photo bucket
- AuthBackend: credentialed session issuance and observation
- FunctionInvoker: hosted function invocation
- BlogStore: all of the above
"""

from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from data.models import AdminUser, AuthSession


class PostStore(Protocol):
    """Protocol for the posts table.

    Listing is always ordered by created_at, newest first.
    """

    def list_posts(
        self,
        category_id: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """List posts, optionally filtered by category and limited to an inclusive range.

        Args:
            category_id: Only posts whose category_ids contain this id.
            start: Zero-based offset of the first row.
            end: Zero-based offset of the last row (inclusive).
        """
        ...

    def count_posts(self) -> int:
        """Return the exact number of posts."""
        ...

    def get_post(self, post_id: str) -> Dict[str, Any]:
        """Return one post row; raises NotFoundError if it does not exist."""
        ...

    def insert_post(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a post row and return it with its id and timestamps."""
        ...

    def update_post(self, post_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Patch the given fields; raises NotFoundError if no row was updated."""
        ...

    def delete_post(self, post_id: str) -> None:
        """Delete a post row."""
        ...


class CategoryStore(Protocol):
    """Protocol for the categories table. Listing is ordered by name."""

    def list_categories(self) -> List[Dict[str, Any]]:
        ...

    def insert_category(self, row: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_category(self, category_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_category(self, category_id: str) -> None:
        ...


class CommentStore(Protocol):
    """Protocol for the comments table. Listing is oldest first."""

    def list_comments(self, post_id: str) -> List[Dict[str, Any]]:
        ...

    def insert_comment(self, row: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete_comment(self, comment_id: str) -> None:
        ...


class SubscriberStore(Protocol):
    """Protocol for the newsletter_subscribers table.

    The table is not publicly readable. Inserts and updates return nothing,
    and single-address lookups go through the subscriber_status function.
    """

    def find_subscriber(self, email: str) -> Optional[Dict[str, Any]]:
        """Return the subscriber row for an address (active or not), or None."""
        ...

    def insert_subscriber(self, row: Dict[str, Any]) -> None:
        ...

    def update_subscriber(self, email: str, fields: Dict[str, Any]) -> None:
        ...

    def list_active_subscribers(self) -> List[Dict[str, Any]]:
        """Active subscribers, most recent first."""
        ...

    def count_active_subscribers(self) -> int:
        ...


class BlobStorage(Protocol):
    """Protocol for the public photo bucket."""

    def upload(self, path: str, content: bytes, content_type: str) -> None:
        ...

    def get_public_url(self, path: str) -> str:
        ...

    def remove(self, paths: List[str]) -> None:
        ...

    def download(self, path: str) -> bytes:
        ...

    def list_files(self, prefix: str = "", limit: int = 100) -> List[Dict[str, Any]]:
        ...


class Subscription(Protocol):
    """Handle returned when registering for auth state changes."""

    def unsubscribe(self) -> None:
        ...


class AuthBackend(Protocol):
    """Protocol for the remote auth service."""

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Exchange credentials for a session; raises AuthError when rejected."""
        ...

    def sign_out(self) -> None:
        ...

    def get_session(self) -> Optional[AuthSession]:
        ...

    def get_user(self) -> Optional[AdminUser]:
        ...

    def on_auth_state_change(
        self,
        callback: Callable[[str, Optional[AuthSession]], None]
    ) -> Subscription:
        """Register ``callback(event, session)`` for sign-in, sign-out, refresh and expiry."""
        ...


class FunctionInvoker(Protocol):
    """Protocol for hosted function invocation."""

    def invoke_function(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Invoke a function with a JSON body and return its JSON response."""
        ...


@runtime_checkable
class BlogStore(PostStore, CategoryStore, CommentStore, SubscriberStore,
                BlobStorage, AuthBackend, FunctionInvoker, Protocol):
    """Everything the services need from the remote store."""
    pass
