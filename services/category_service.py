"""
Category Service Module

CRUD operations for post categories. Categories are low-volume, so reads go
straight to the store with no caching.
"""

from typing import List, Optional

from config import settings
from data.database import get_store
from data.models import Category
from data.protocols import CategoryStore
from utils.exceptions import ValidationError
from utils.helpers import call_with_retry, is_blank, is_hex_color, slugify
from utils.logger import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "slug", "color")


class CategoryService:
    """Service for managing categories."""

    def __init__(self, store: Optional[CategoryStore] = None):
        self.store = store if store is not None else get_store()

    def list_categories(self) -> List[Category]:
        """Return all categories ordered by name."""
        rows = call_with_retry(lambda: self.store.list_categories(), "fetchAllCategories")
        return [Category.from_row(row) for row in rows]

    def create_category(self, name: str, slug: Optional[str] = None,
                        color: str = settings.DEFAULT_CATEGORY_COLOR) -> Category:
        """
        Create a category.

        Args:
            name: Display name
            slug: URL-safe slug; derived from the name when None
            color: Hex display colour

        Returns:
            Category: The stored category
        """
        if is_blank(name):
            raise ValidationError("Name and slug are required")
        if slug is None:
            slug = slugify(name)
        if is_blank(slug):
            raise ValidationError("Name and slug are required")
        if not is_hex_color(color):
            raise ValidationError(f"Color must be a hex colour like #3B82F6, got {color!r}")

        row = {"name": name.strip(), "slug": slug.strip(), "color": color}
        created = call_with_retry(lambda: self.store.insert_category(row), "createCategory")
        logger.info(f"Created category {row['name']!r}")
        return Category.from_row(created)

    def update_category(self, category_id: str, **updates) -> Category:
        """
        Update any of name, slug and color on a category.

        Raises:
            ValidationError: If the id is missing, no field is given, or a field is blank
        """
        if is_blank(category_id):
            raise ValidationError("Category ID is required")

        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown category fields: {', '.join(sorted(unknown))}")

        fields = {key: value for key, value in updates.items() if value is not None}
        if not fields:
            raise ValidationError("At least one field is required for update")

        for key, value in fields.items():
            if is_blank(value):
                raise ValidationError(f"Category {key} must not be blank")
            fields[key] = value.strip()
        if "color" in fields and not is_hex_color(fields["color"]):
            raise ValidationError(f"Color must be a hex colour like #3B82F6, got {fields['color']!r}")

        updated = call_with_retry(lambda: self.store.update_category(category_id, fields), "updateCategory")
        logger.info(f"Updated category {category_id}")
        return Category.from_row(updated)

    def delete_category(self, category_id: str) -> None:
        """Delete a category. Posts keep the id in their category list."""
        if is_blank(category_id):
            raise ValidationError("Category ID is required")
        call_with_retry(lambda: self.store.delete_category(category_id), "deleteCategory")
        logger.info(f"Deleted category {category_id}")
