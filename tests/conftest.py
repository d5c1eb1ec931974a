import asyncio
from copy import deepcopy

import pytest

from eyewear_catalog.models.category import CategoryLevel
from eyewear_catalog.services.category_source import SourceError


class FakeCategorySource:
    """In-memory stand-in for CategorySourceClient.

    ``failing`` holds either an operation name ("categories",
    "subcategories", "children", "slug", "id") or an (operation, key)
    pair; matching calls raise SourceError. ``slow`` works the same way
    but makes the call hang past any sensible timeout.
    """

    def __init__(self, categories=None, subcategories=None, children=None,
                 failing=(), slow=()):
        self.categories = categories or []
        self.subcategories = subcategories or {}
        self.children = children or {}
        self.failing = set(failing)
        self.slow = set(slow)
        self.calls = []

    async def _call(self, operation, key):
        self.calls.append((operation, key))
        if operation in self.slow or (operation, key) in self.slow:
            await asyncio.sleep(5)
        if operation in self.failing or (operation, key) in self.failing:
            raise SourceError(f"{operation} {key} unavailable", endpoint=f"/{operation}")

    def calls_to(self, operation):
        return [key for op, key in self.calls if op == operation]

    def _subcategory_pool(self):
        for records in list(self.subcategories.values()) + list(self.children.values()):
            yield from records

    async def fetch_top_level_categories(self, include_products=False, include_subcategories=False):
        await self._call("categories", (include_products, include_subcategories))
        return deepcopy(self.categories)

    async def fetch_subcategories_by_category_id(self, category_id):
        await self._call("subcategories", category_id)
        return deepcopy(self.subcategories.get(category_id, []))

    async def fetch_sub_subcategories_by_parent_id(self, parent_id):
        await self._call("children", parent_id)
        return deepcopy(self.children.get(parent_id, []))

    async def fetch_node_by_slug(self, level, slug):
        await self._call("slug", slug)
        pool = self.categories if level == CategoryLevel.CATEGORY else self._subcategory_pool()
        for record in pool:
            # exact match, like a case-sensitive backend
            if record.get("slug") == slug:
                return deepcopy(record)
        return None

    async def fetch_node_by_id(self, level, node_id):
        await self._call("id", node_id)
        pool = self.categories if level == CategoryLevel.CATEGORY else self._subcategory_pool()
        for record in pool:
            if record.get("id") == node_id:
                return deepcopy(record)
        return None


@pytest.fixture
def make_source():
    return FakeCategorySource


@pytest.fixture
def catalog_source():
    """A small but realistic catalog with the usual backend quirks"""
    categories = [
        {"id": 2, "name": "Sun Glasses", "slug": "sun-glasses", "is_active": True, "sort_order": 2},
        {"id": 1, "name": "Eye Glasses", "slug": "eye-glasses", "is_active": True, "sort_order": 1,
         "subcategories": [{"id": 99, "name": "Stale", "slug": "stale", "category_id": 1}]},
        {"id": 3, "name": "Archived", "slug": "archived", "is_active": False, "sort_order": 0},
        # no is_active flag at all
        {"id": 4, "name": "Contact Lenses", "slug": "contact-lenses", "sort_order": 3},
    ]
    subcategories = {
        1: [
            {"id": 11, "name": "Men", "slug": "men", "category_id": 1, "sort_order": 2,
             "children": [
                 {"id": 111, "name": "Aviator", "slug": "aviator", "parent_id": 11, "sort_order": 1},
                 {"id": 112, "name": "Round", "slug": "round", "parent_id": 11, "sort_order": 0,
                  "is_active": False},
             ]},
            {"id": 12, "name": "Women", "slug": "women", "category_id": 1, "sort_order": 1,
             "children": []},
            {"id": 13, "name": "Hidden", "slug": "hidden", "category_id": 1, "is_active": False},
        ],
        2: [
            {"id": 21, "name": "Polarized", "slug": "polarized", "category_id": 2},
        ],
        4: [
            {"id": 41, "name": "Daily", "slug": "daily", "category_id": 4},
        ],
    }
    children = {
        12: [
            {"id": 121, "name": "Cat Eye", "slug": "cat-eye", "sort_order": 5},
            {"id": 122, "name": "Oval", "slug": "oval", "sort_order": 5},
            {"id": 123, "name": "Square", "slug": "square", "sort_order": 1},
        ],
        13: [
            {"id": 131, "name": "Under Hidden", "slug": "under-hidden"},
        ],
    }
    return FakeCategorySource(categories=categories, subcategories=subcategories, children=children)
