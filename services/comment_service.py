"""
Comment Service Module

Reader comments on posts. Comments are public: anyone may add or delete one.
"""

from typing import List, Optional

from data.database import get_store
from data.models import Comment
from data.protocols import CommentStore
from utils.exceptions import ValidationError
from utils.helpers import call_with_retry, is_blank
from utils.logger import get_logger

logger = get_logger(__name__)


class CommentService:
    """Service for post comments."""

    def __init__(self, store: Optional[CommentStore] = None):
        self.store = store if store is not None else get_store()

    def list_comments(self, post_id: str) -> List[Comment]:
        """Return a post's comments, oldest first."""
        if is_blank(post_id):
            raise ValidationError("Post ID is required")
        rows = call_with_retry(lambda: self.store.list_comments(post_id), "fetchComments")
        return [Comment.from_row(row) for row in rows]

    def create_comment(self, post_id: str, author_name: str, content: str) -> Comment:
        """
        Add a comment to a post.

        Args:
            post_id: The post being commented on
            author_name: Name shown with the comment
            content: Comment text

        Returns:
            Comment: The stored comment
        """
        if is_blank(post_id):
            raise ValidationError("Post ID is required")
        if is_blank(author_name):
            raise ValidationError("Name is required")
        if is_blank(content):
            raise ValidationError("Comment is required")

        row = {"post_id": post_id, "author_name": author_name.strip(), "content": content.strip()}
        created = call_with_retry(lambda: self.store.insert_comment(row), "createComment")
        logger.info(f"Added comment to post {post_id}")
        return Comment.from_row(created)

    def delete_comment(self, comment_id: str) -> None:
        if is_blank(comment_id):
            raise ValidationError("Comment ID is required")
        call_with_retry(lambda: self.store.delete_comment(comment_id), "deleteComment")
        logger.info(f"Deleted comment {comment_id}")
