"""
Post Service Module

This module provides the data-access operations for blog posts: the cached
feed, paginated and category-filtered reads, and the create, update and
delete protocols that keep the photo bucket and the posts table in step.

Every remote call goes through the retry wrapper. The feed cache is only
invalidated after a mutation has succeeded remotely.
"""

import time
from typing import List, Optional

from config import settings
from data.cache import FeedCache, feed_cache
from data.database import get_store
from data.protocols import BlogStore
from data.models import (
    BlogPost,
    CoverImagePosition,
    CreatePostInput,
    PhotoUpload,
    PostPage,
    UpdatePostInput,
)
from utils.exceptions import CompensationError, ValidationError
from utils.helpers import call_with_retry, is_blank
from utils.logger import get_logger

logger = get_logger(__name__)


def reorder_for_cover(photo_urls: List[str], cover_index: Optional[int]) -> List[str]:
    """
    Move the chosen cover photo to the front of the list.

    Args:
        photo_urls: URLs in upload order
        cover_index: Index of the cover photo, or None for the first photo

    Returns:
        List[str]: New list with the cover first and the rest in their original order
    """
    urls = list(photo_urls)
    if cover_index is None or isinstance(cover_index, bool) or not 0 <= cover_index < len(urls):
        return urls
    cover = urls.pop(cover_index)
    return [cover] + urls


def blob_path_from_url(url: str, bucket: str) -> Optional[str]:
    """
    Derive a storage path from a public photo URL.

    The path is everything after the bucket segment, e.g.
    ``.../object/public/blog-photos/<post-id>/<file>`` gives ``<post-id>/<file>``.
    Returns None when the URL does not point into the bucket.
    """
    marker = f"/{bucket}/"
    if marker not in url:
        return None
    path = url.split(marker, 1)[1].split("?", 1)[0]
    return path or None


class PostService:
    """Service for reading and writing blog posts."""

    def __init__(self, store: Optional[BlogStore] = None, cache: Optional[FeedCache] = None):
        """
        Initialize the post service.

        Args:
            store: Object implementing PostStore and BlobStorage; defaults to the shared store
            cache: Feed cache to use; defaults to the process-wide cache
        """
        self.store = store if store is not None else get_store()
        self.cache = cache if cache is not None else feed_cache
        self.bucket = getattr(self.store, "bucket", settings.STORAGE_BUCKET)
        self._last_upload_ms = 0

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_posts(self) -> List[BlogPost]:
        """
        Return every post, newest first, served from the feed cache when fresh.

        Returns:
            List[BlogPost]: The full feed
        """
        cached = self.cache.get()
        if cached is not None:
            logger.debug(f"Feed cache hit ({len(cached)} posts)")
            return cached

        logger.debug("Feed cache miss, fetching posts")
        rows = call_with_retry(lambda: self.store.list_posts(), "fetchAllPosts")
        posts = [BlogPost.from_row(row) for row in rows]
        self.cache.set(posts)
        return list(posts)

    def list_posts_page(self, page: int = 0, page_size: int = settings.DEFAULT_PAGE_SIZE) -> PostPage:
        """
        Return one page of the feed, bypassing the cache.

        Args:
            page: 0-based page number
            page_size: Number of posts per page

        Returns:
            PostPage: The posts, whether more pages follow, and the total count
        """
        if page < 0:
            raise ValidationError(f"Page must be at least 0, got {page}")
        if not 1 <= page_size <= settings.MAX_PAGE_SIZE:
            raise ValidationError(f"Page size must be between 1 and {settings.MAX_PAGE_SIZE}, got {page_size}")

        start = page * page_size
        end = start + page_size - 1

        # Count and page are separate reads; has_more may be off by a page under concurrent writes
        total = call_with_retry(lambda: self.store.count_posts(), "countPosts")
        rows = call_with_retry(lambda: self.store.list_posts(start=start, end=end), "fetchPostsPaginated")
        posts = [BlogPost.from_row(row) for row in rows]

        return PostPage(posts=posts, has_more=start + len(posts) < total, total=total)

    def list_posts_by_category(self, category_id: str) -> List[BlogPost]:
        """Return the posts tagged with a category, newest first, bypassing the cache."""
        if is_blank(category_id):
            raise ValidationError("Category ID is required")
        rows = call_with_retry(lambda: self.store.list_posts(category_id=category_id), "fetchPostsByCategory")
        return [BlogPost.from_row(row) for row in rows]

    def get_post(self, post_id: str) -> BlogPost:
        """Return one post by id; raises NotFoundError if it does not exist."""
        if is_blank(post_id):
            raise ValidationError("Post ID is required")
        row = call_with_retry(lambda: self.store.get_post(post_id), "fetchPost")
        return BlogPost.from_row(row)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create_post(self, data: CreatePostInput) -> BlogPost:
        """
        Create a post and upload its photos.

        The row is inserted first to obtain an id, the photos are uploaded
        under that id, then the row is patched with the photo URLs and the
        cover. If any step after the insert fails, the row and the uploaded
        photos are removed and the original error is raised.

        Args:
            data: The post to create

        Returns:
            BlogPost: The stored post

        Raises:
            ValidationError: If title, story or photos are missing (no remote call is made)
        """
        data.validate()

        position = data.cover_image_position or CoverImagePosition.from_dict(settings.DEFAULT_COVER_POSITION)
        row = {
            "title": data.title,
            "story": data.story,
            "photo_urls": [],
            "cover_image_url": None,
            "cover_image_position": position.to_dict(),
            "category_ids": list(data.category_ids or []),
        }
        created = call_with_retry(lambda: self.store.insert_post(row), "createPost")
        post_id = str(created["id"])

        uploaded_paths: List[str] = []
        try:
            photo_urls = self._upload_photos(post_id, data.photos, uploaded_paths)
            photo_urls = reorder_for_cover(photo_urls, data.cover_image_index)
            fields = {"photo_urls": photo_urls, "cover_image_url": photo_urls[0]}
            updated = call_with_retry(lambda: self.store.update_post(post_id, fields), "updatePostPhotos")
        except Exception:
            logger.warning(f"Creating post {post_id} failed, rolling back")
            if uploaded_paths:
                self._best_effort(lambda: self.store.remove(uploaded_paths),
                                  f"remove photos of incomplete post {post_id}")
            self._best_effort(lambda: self.store.delete_post(post_id), f"delete incomplete post {post_id}")
            raise

        self.cache.invalidate()
        logger.info(f"Created post {post_id} with {len(photo_urls)} photos")
        return BlogPost.from_row(updated)

    def update_post(self, data: UpdatePostInput) -> BlogPost:
        """
        Update a post, appending any new photos.

        ``cover_image_position`` and ``category_ids`` are only written when set
        on the input. A given cover is moved to the front of the kept photos;
        new photos are appended after them. The stored cover is always the
        first photo of the resulting list.

        Args:
            data: The new values

        Returns:
            BlogPost: The stored post
        """
        data.validate()

        photo_urls = list(data.photo_urls)
        if data.cover_image_url is not None:
            photo_urls = [data.cover_image_url] + [u for u in photo_urls if u != data.cover_image_url]

        uploaded_paths: List[str] = []
        try:
            photo_urls += self._upload_photos(data.id, data.photos or [], uploaded_paths)

            fields = {
                "title": data.title,
                "story": data.story,
                "photo_urls": photo_urls,
                "cover_image_url": photo_urls[0],
            }
            if data.cover_image_position is not None:
                fields["cover_image_position"] = data.cover_image_position.to_dict()
            if data.category_ids is not None:
                fields["category_ids"] = list(data.category_ids)

            updated = call_with_retry(lambda: self.store.update_post(data.id, fields), "updatePost")
        except Exception:
            if uploaded_paths:
                self._best_effort(lambda: self.store.remove(uploaded_paths),
                                  f"remove new photos of post {data.id}")
            raise

        self.cache.invalidate()
        logger.info(f"Updated post {data.id}")
        return BlogPost.from_row(updated)

    def delete_post(self, post_id: str) -> None:
        """
        Delete a post and, best effort, its photos.

        Photo removal failures are logged and do not stop the row delete. If
        the row delete fails the post and the feed cache are left unchanged.
        """
        if is_blank(post_id):
            raise ValidationError("Post ID is required")

        row = call_with_retry(lambda: self.store.get_post(post_id), "fetchPostForDelete")
        paths = [p for p in (blob_path_from_url(url, self.bucket) for url in row.get("photo_urls") or []) if p]

        if paths:
            self._best_effort(lambda: self.store.remove(paths), f"remove photos of post {post_id}")

        call_with_retry(lambda: self.store.delete_post(post_id), "deletePost")

        self.cache.invalidate()
        logger.info(f"Deleted post {post_id} and {len(paths)} photos")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _photo_path(self, post_id: str, filename: str) -> str:
        # Millisecond prefix, kept strictly increasing so same-name files never collide
        now_ms = max(int(time.time() * 1000), self._last_upload_ms + 1)
        self._last_upload_ms = now_ms
        return f"{post_id}/{now_ms}_{filename}"

    def _upload_photos(self, post_id: str, photos: List[PhotoUpload], uploaded_paths: List[str]) -> List[str]:
        """Upload photos in order; record each stored path in uploaded_paths as it lands."""
        urls = []
        for photo in photos:
            path = self._photo_path(post_id, photo.filename)
            call_with_retry(lambda: self.store.upload(path, photo.content, photo.content_type), "uploadPhoto")
            uploaded_paths.append(path)
            urls.append(call_with_retry(lambda: self.store.get_public_url(path), "getPhotoUrl"))
        return urls

    def _best_effort(self, func, description: str) -> None:
        try:
            call_with_retry(func, description)
        except Exception as e:
            error = CompensationError(f"Failed to {description}: {e}")
            logger.error(str(error))
