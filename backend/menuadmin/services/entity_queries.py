"""Query builders bound to concrete entities.

Each builder excludes soft-deleted rows and adds named filters that are
shorthand for ``filter()`` or ``refine()``, so named filters combine with
each other. The ``*_advanced`` methods replace the advanced search.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from menuadmin.models.file import File
from menuadmin.models.menu import Category, Item
from menuadmin.models.store import Store
from menuadmin.models.user import User
from menuadmin.services.collection import Collection, SQLAlchemyCollection
from menuadmin.services.query_builder import QueryBuilder

NOT_DELETED = {"deleted_at": None}


class EntityQueryBuilder(QueryBuilder):
    model: type = None  # type: ignore[assignment]

    def __init__(self, collection: Collection, **options):
        super().__init__(collection, **options)
        self._filters = {**NOT_DELETED, **self._filters}

    @classmethod
    def bind(cls, session_factory: async_sessionmaker[AsyncSession], **options):
        """Builder over a SQLAlchemy collection for ``cls.model``."""
        return cls(SQLAlchemyCollection(cls.model, session_factory), **options)


class StoreQueryBuilder(EntityQueryBuilder):
    model = Store

    def search_stores(self, term: str) -> "StoreQueryBuilder":
        return self.search_text(term, ["title"])

    def search_stores_advanced(self, filters: list) -> "StoreQueryBuilder":
        return self.search(filters)

    def by_store_type(self, store_type_id: uuid.UUID | str) -> "StoreQueryBuilder":
        return self.filter({"store_type_id": store_type_id})

    def by_active_status(self, active: bool) -> "StoreQueryBuilder":
        return self.filter({"active": active})

    def by_user(self, user_id: uuid.UUID | str) -> "StoreQueryBuilder":
        return self.filter({"user_id": user_id})

    def by_created_date_range(self, start: datetime, end: datetime) -> "StoreQueryBuilder":
        return self.refine([
            {"field": "created_at", "value": [start, end], "operation": "between"},
        ])

    def by_store_type_advanced(self, store_type_ids: list) -> "StoreQueryBuilder":
        return self.refine([
            {"field": "store_type_id", "value": store_type_ids, "operation": "in"},
        ])

    def with_relations(self) -> "StoreQueryBuilder":
        return self.include({
            "store_type": True,
            "user": {"select": {"id": True, "username": True}},
            "branches": {"where": {"deleted_at": None, "active": True}},
        })


class UserQueryBuilder(EntityQueryBuilder):
    model = User

    def search_users(self, term: str) -> "UserQueryBuilder":
        return self.search_text(term, ["username"])

    def search_users_advanced(self, filters: list) -> "UserQueryBuilder":
        return self.search(filters)

    def by_role(self, role: str) -> "UserQueryBuilder":
        return self.filter({"role": role})

    def by_active_status(self, active: bool) -> "UserQueryBuilder":
        return self.filter({"active": active})

    def by_created_after(self, when: datetime) -> "UserQueryBuilder":
        return self.refine([{"field": "created_at", "value": when, "operation": "gte"}])

    def by_username_pattern(self, pattern: str) -> "UserQueryBuilder":
        return self.refine([{"field": "username", "value": pattern, "operation": "contains"}])

    def with_profile(self) -> "UserQueryBuilder":
        return self.include({"profile": True})


class FileQueryBuilder(EntityQueryBuilder):
    model = File

    def search_files(self, term: str) -> "FileQueryBuilder":
        return self.search_text(term, ["name"])

    def search_files_advanced(self, filters: list) -> "FileQueryBuilder":
        return self.search(filters)

    def by_owner(self, owner_id: uuid.UUID | str) -> "FileQueryBuilder":
        return self.filter({"owner_id": owner_id})

    def by_published_status(self, published: bool) -> "FileQueryBuilder":
        return self.filter({"published": published})

    def by_storage_type(self, storage_type: str) -> "FileQueryBuilder":
        return self.filter({"storage_type": storage_type})

    def by_file_size_range(self, min_size: int, max_size: int) -> "FileQueryBuilder":
        return self.refine([
            {"field": "size", "value": [min_size, max_size], "operation": "between"},
        ])

    def by_file_type(self, mime_types: list[str]) -> "FileQueryBuilder":
        return self.refine([{"field": "mime_type", "value": mime_types, "operation": "in"}])

    def with_owner(self) -> "FileQueryBuilder":
        return self.include({"owner": {"select": {"id": True, "username": True}}})


class CategoryQueryBuilder(EntityQueryBuilder):
    model = Category

    def by_store(self, store_id: uuid.UUID | str) -> "CategoryQueryBuilder":
        return self.filter({"store_id": store_id})

    def by_active_status(self, active: bool) -> "CategoryQueryBuilder":
        return self.filter({"active": active})

    def with_relations(self) -> "CategoryQueryBuilder":
        return self.include({
            "store": {"select": {"id": True, "title": True}},
            "items": {"where": {"deleted_at": None}},
        })


class ItemQueryBuilder(EntityQueryBuilder):
    model = Item

    def by_category(self, category_id: uuid.UUID | str) -> "ItemQueryBuilder":
        return self.filter({"category_id": category_id})

    def by_active_status(self, active: bool) -> "ItemQueryBuilder":
        return self.filter({"active": active})

    def by_price_range(
        self, low: Decimal | None = None, high: Decimal | None = None
    ) -> "ItemQueryBuilder":
        """Items priced within [low, high]; either bound may be left open."""
        if low is not None and high is not None:
            spec = {"field": "price", "value": [low, high], "operation": "between"}
        elif low is not None:
            spec = {"field": "price", "value": low, "operation": "gte"}
        elif high is not None:
            spec = {"field": "price", "value": high, "operation": "lte"}
        else:
            return self
        return self.refine([spec])

    def by_store_title(self, title: str) -> "ItemQueryBuilder":
        return self.refine([{
            "field": "title",
            "value": title,
            "operation": "contains",
            "relation": "category.store",
        }])

    def with_relations(self) -> "ItemQueryBuilder":
        return self.include({"category": {"select": {"id": True, "title": True}}})
