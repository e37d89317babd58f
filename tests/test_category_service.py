"""
Tests for CategoryService
"""

import pytest
from unittest.mock import patch
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.category_service import CategoryService
from utils.exceptions import AuthError, DuplicateError, NotFoundError, TransientError, ValidationError


@pytest.fixture
def service(admin_store):
    return CategoryService(store=admin_store)


class TestCreateCategory:
    """Tests for category creation and its validation."""

    def test_create_with_slug_and_color(self, service, admin_store):
        category = service.create_category("Travel", "travel", "#10B981")

        assert (category.name, category.slug, category.color) == ("Travel", "travel", "#10B981")
        assert category.id in admin_store.categories

    def test_slug_derived_from_name(self, service):
        category = service.create_category("Food & Drink")

        assert category.slug == "food-drink"

    def test_default_color(self, service):
        assert service.create_category("Music").color == "#3B82F6"

    def test_values_trimmed(self, service):
        category = service.create_category("  Books  ", "  books ")

        assert (category.name, category.slug) == ("Books", "books")

    @pytest.mark.parametrize("name,slug", [("", "x"), ("   ", None), ("Name", "  "), ("!!!", None)])
    def test_blank_name_or_slug(self, service, admin_store, name, slug):
        with pytest.raises(ValidationError, match="Name and slug are required"):
            service.create_category(name, slug)

        assert admin_store.categories == {}

    def test_invalid_color(self, service):
        with pytest.raises(ValidationError, match="hex colour"):
            service.create_category("Travel", color="blue")

    def test_duplicate_slug(self, service):
        service.create_category("Travel", "travel")

        with pytest.raises(DuplicateError, match="categories_slug_key"):
            service.create_category("Travels", "travel")

    def test_requires_session(self, memory_store):
        with pytest.raises(AuthError, match="row-level security"):
            CategoryService(store=memory_store).create_category("Travel")


class TestListCategories:

    def test_ordered_by_name(self, service):
        for name in ("Travel", "Art", "Music"):
            service.create_category(name)

        assert [c.name for c in service.list_categories()] == ["Art", "Music", "Travel"]

    def test_public_read(self, admin_store):
        CategoryService(store=admin_store).create_category("Travel")
        admin_store.sign_out()

        assert [c.name for c in CategoryService(store=admin_store).list_categories()] == ["Travel"]

    def test_read_is_retried(self, service, admin_store, no_retry_sleep):
        with patch.object(admin_store, "list_categories",
                          side_effect=[TransientError("Failed to fetch categories: 502"), []]):
            assert service.list_categories() == []

        no_retry_sleep.assert_called_once_with(1.0)


class TestUpdateCategory:
    """Tests for partial category updates."""

    @pytest.fixture
    def travel(self, service):
        return service.create_category("Travel", "travel", "#10B981")

    def test_partial_update(self, service, travel):
        updated = service.update_category(travel.id, name="Trips")

        assert (updated.name, updated.slug, updated.color) == ("Trips", "travel", "#10B981")

    def test_none_values_ignored(self, service, travel):
        updated = service.update_category(travel.id, name=None, color="#000000")

        assert (updated.name, updated.color) == ("Travel", "#000000")

    def test_no_fields(self, service, travel):
        with pytest.raises(ValidationError, match="At least one field is required"):
            service.update_category(travel.id, name=None)

    def test_blank_field(self, service, travel):
        with pytest.raises(ValidationError, match="Category slug must not be blank"):
            service.update_category(travel.id, slug="  ")

    def test_unknown_field(self, service, travel):
        with pytest.raises(ValidationError, match="Unknown category fields: icon"):
            service.update_category(travel.id, icon="plane")

    def test_invalid_color(self, service, travel):
        with pytest.raises(ValidationError, match="hex colour"):
            service.update_category(travel.id, color="#12")

    def test_missing_id(self, service):
        with pytest.raises(ValidationError, match="Category ID is required"):
            service.update_category("", name="x")

    def test_unknown_category(self, service):
        with pytest.raises(NotFoundError):
            service.update_category("missing", name="x")

    def test_duplicate_name(self, service, travel):
        food = service.create_category("Food")

        with pytest.raises(DuplicateError):
            service.update_category(food.id, name="Travel")


class TestDeleteCategory:

    def test_delete_leaves_post_references(self, service, admin_store):
        category = service.create_category("Travel")
        admin_store.insert_post({"title": "T", "story": "S", "category_ids": [category.id]})

        service.delete_category(category.id)

        assert admin_store.categories == {}
        assert [p["category_ids"] for p in admin_store.posts.values()] == [[category.id]]

    def test_missing_id(self, service):
        with pytest.raises(ValidationError):
            service.delete_category(" ")
