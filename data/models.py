"""
Data Models for the Blog Backend

This module contains the data classes exchanged between the services and
the remote store: stored rows (posts, categories, comments, subscribers),
service inputs, and auth session records.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from utils.exceptions import ValidationError
from utils.helpers import is_blank


@dataclass
class CoverImagePosition:
    """Focal point and zoom of a post's cover image."""
    x: float = 50                      # Horizontal position (0-100)
    y: float = 50                      # Vertical position (0-100)
    zoom: float = 100                  # Zoom level (50-200)

    def validate(self) -> None:
        if not 0 <= self.x <= 100:
            raise ValidationError(f"Cover image x position must be between 0 and 100, got {self.x}")
        if not 0 <= self.y <= 100:
            raise ValidationError(f"Cover image y position must be between 0 and 100, got {self.y}")
        if not 50 <= self.zoom <= 200:
            raise ValidationError(f"Cover image zoom must be between 50 and 200, got {self.zoom}")

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "zoom": self.zoom}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CoverImagePosition":
        if not data:
            return cls()
        return cls(x=data.get("x", 50), y=data.get("y", 50), zoom=data.get("zoom", 100))


@dataclass
class BlogPost:
    """A stored blog post."""
    id: str
    title: str
    story: str                         # Rich text HTML content
    photo_urls: List[str] = field(default_factory=list)
    cover_image_url: Optional[str] = None
    cover_image_position: CoverImagePosition = field(default_factory=CoverImagePosition)
    category_ids: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "BlogPost":
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            story=row.get("story") or "",
            photo_urls=list(row.get("photo_urls") or []),
            cover_image_url=row.get("cover_image_url"),
            cover_image_position=CoverImagePosition.from_dict(row.get("cover_image_position")),
            category_ids=[str(c) for c in (row.get("category_ids") or [])],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "story": self.story,
            "photo_urls": list(self.photo_urls),
            "cover_image_url": self.cover_image_url,
            "cover_image_position": self.cover_image_position.to_dict(),
            "category_ids": list(self.category_ids),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Category:
    """A post category, referenced from posts by id."""
    id: str
    name: str
    slug: str
    color: str                         # Hex color code
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Category":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            slug=row.get("slug") or "",
            color=row.get("color") or "",
            created_at=row.get("created_at"),
        )


@dataclass
class Comment:
    """A reader comment on a post."""
    id: str
    post_id: str
    author_name: str
    content: str
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Comment":
        return cls(
            id=str(row["id"]),
            post_id=str(row["post_id"]),
            author_name=row.get("author_name") or "",
            content=row.get("content") or "",
            created_at=row.get("created_at"),
        )


@dataclass
class NewsletterSubscriber:
    """A newsletter subscription row."""
    id: str
    email: str
    is_active: bool = True
    subscribed_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "NewsletterSubscriber":
        return cls(
            id=str(row["id"]),
            email=row.get("email") or "",
            is_active=bool(row.get("is_active", True)),
            subscribed_at=row.get("subscribed_at"),
        )


@dataclass
class PhotoUpload:
    """An image file to upload to the blob store."""
    filename: str
    content: bytes
    content_type: str = "image/jpeg"


@dataclass
class CreatePostInput:
    """Input for creating a post."""
    title: str
    story: str
    photos: List[PhotoUpload] = field(default_factory=list)
    cover_image_index: Optional[int] = None     # Index of cover image in photos
    cover_image_position: Optional[CoverImagePosition] = None
    category_ids: Optional[List[str]] = None

    def validate(self) -> None:
        """Fail fast on missing required fields, before any remote call."""
        if is_blank(self.title):
            raise ValidationError("Title is required")
        if is_blank(self.story):
            raise ValidationError("Story is required")
        if not self.photos:
            raise ValidationError("At least one photo is required")
        if self.cover_image_position is not None:
            self.cover_image_position.validate()


@dataclass
class UpdatePostInput:
    """
    Input for updating a post.

    ``photo_urls`` is the full list of photos to keep; ``photos`` are new files
    appended after them. Optional fields left as None are not sent, so the
    stored values stay untouched; the stored cover follows the first photo.
    """
    id: str
    title: str
    story: str
    photo_urls: List[str] = field(default_factory=list)
    photos: Optional[List[PhotoUpload]] = None
    cover_image_url: Optional[str] = None
    cover_image_position: Optional[CoverImagePosition] = None
    category_ids: Optional[List[str]] = None

    def validate(self) -> None:
        if is_blank(self.id):
            raise ValidationError("Post ID is required")
        if is_blank(self.title):
            raise ValidationError("Title is required")
        if is_blank(self.story):
            raise ValidationError("Story is required")
        if not self.photo_urls and not self.photos:
            raise ValidationError("At least one photo is required")
        if self.cover_image_url is not None and self.cover_image_url not in self.photo_urls:
            raise ValidationError("Cover image must be one of the post's photos")
        if self.cover_image_position is not None:
            self.cover_image_position.validate()


@dataclass
class PostPage:
    """One page of the feed."""
    posts: List[BlogPost]
    has_more: bool
    total: int


@dataclass
class NewsletterEmailData:
    """Payload describing the post announced by a newsletter."""
    post_id: str
    post_title: str
    post_content: str                  # HTML story of the post
    post_url: str
    site_title: str

    def missing_fields(self) -> List[str]:
        return [name for name in ("post_id", "post_title", "post_content", "post_url", "site_title")
                if is_blank(getattr(self, name))]

    def to_payload(self) -> Dict[str, str]:
        return {
            "postId": self.post_id,
            "postTitle": self.post_title,
            "postContent": self.post_content,
            "postUrl": self.post_url,
            "siteTitle": self.site_title,
        }


@dataclass
class AdminUser:
    """The authenticated administrator identity."""
    id: str
    email: Optional[str] = None


@dataclass
class AuthSession:
    """An auth session issued by the remote auth service."""
    access_token: str
    user: AdminUser
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


@dataclass
class AuthState:
    """Authentication state derived from the current session."""
    user: Optional[AdminUser] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin_mode(self) -> bool:
        # There is exactly one administrator account
        return self.user is not None
