"""Fluent query builder producing paginated results from a collection.

One builder instance belongs to one request. State is accumulated through
chainable calls and compiled by ``execute()`` into a single where clause
shared by the list query and the count query.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any

from menuadmin.config import settings
from menuadmin.core.exceptions import ProjectionConflictError
from menuadmin.schemas.query import FilterSpec, PaginatedResult, parse_filters
from menuadmin.services.collection import Collection
from menuadmin.services.operators import INSENSITIVE, compile_filters

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = settings.QUERY_DEFAULT_LIMIT
MAX_LIMIT = 100
DEFAULT_ORDER_BY = {"created_at": "desc"}


# ── Search mode and projection (one active variant each) ─────────────


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match, OR-combined over ``fields``."""

    term: str
    fields: tuple[str, ...]


@dataclass(frozen=True)
class AdvancedSearch:
    """Filter specifications, AND-combined."""

    filters: tuple[FilterSpec, ...]


@dataclass(frozen=True)
class Include:
    relations: dict


@dataclass(frozen=True)
class Select:
    fields: dict


SearchMode = TextSearch | AdvancedSearch | None
Projection = Include | Select | None


def clamp_limit(limit: int | None, max_limit: int = MAX_LIMIT) -> int:
    if not limit:
        limit = DEFAULT_LIMIT
    return max(1, min(limit, max_limit, MAX_LIMIT))


def paginate_meta(limit: int, offset: int, total: int) -> dict:
    return {
        "total_count": total,
        "has_more": offset + limit < total,
        "current_page": offset // limit + 1,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


class QueryBuilder:
    """Accumulates pagination, ordering, search, filters and projection.

    The generic builder knows nothing about deletion semantics; entity
    builders add ``{"deleted_at": None}`` to ``filters`` themselves.
    """

    def __init__(
        self,
        collection: Collection,
        *,
        limit: int | None = None,
        offset: int | None = None,
        filters: dict | None = None,
        order_by: dict[str, str] | None = None,
        include: dict | None = None,
        select: dict | None = None,
    ):
        self.collection = collection
        self._limit = limit if limit is not None else DEFAULT_LIMIT
        self._offset = offset if offset is not None else 0
        self._filters: dict[str, Any] = dict(filters or {})
        self._order_by: dict[str, str] | None = dict(order_by) if order_by else None
        self._search: SearchMode = None
        self._projection: Projection = None
        if include is not None and select is not None:
            raise ProjectionConflictError("include and select cannot be used together")
        if include is not None:
            self._projection = Include(dict(include))
        elif select is not None:
            self._projection = Select(dict(select))

    # -- state transitions --

    def paginate(self, limit: int | None = None, offset: int | None = None) -> "QueryBuilder":
        """Set pagination; the limit is clamped at execution time."""
        if limit is not None:
            self._limit = limit
        if offset is not None:
            self._offset = offset
        return self

    def filter(self, filters: dict) -> "QueryBuilder":
        self._filters = {**self._filters, **filters}
        return self

    def search(self, filters: list) -> "QueryBuilder":
        """Switch to advanced search, discarding any free-text search."""
        self._search = AdvancedSearch(tuple(parse_filters(list(filters))))
        return self

    def refine(self, filters: list) -> "QueryBuilder":
        """Add filters to the active advanced search, starting one if needed."""
        parsed = tuple(parse_filters(list(filters)))
        if isinstance(self._search, AdvancedSearch):
            parsed = self._search.filters + parsed
        self._search = AdvancedSearch(parsed)
        return self

    def search_text(self, term: str, fields: list[str]) -> "QueryBuilder":
        """Switch to free-text search, discarding any advanced filters."""
        self._search = TextSearch(term, tuple(fields))
        return self

    def order_by(self, order_by: dict[str, str]) -> "QueryBuilder":
        self._order_by = dict(order_by)
        return self

    def include(self, include: dict, *, replace: bool = False) -> "QueryBuilder":
        if isinstance(self._projection, Select) and not replace:
            raise ProjectionConflictError(
                "select() is already set; pass replace=True to switch to include()"
            )
        self._projection = Include(dict(include))
        return self

    def select(self, select: dict, *, replace: bool = False) -> "QueryBuilder":
        if isinstance(self._projection, Include) and not replace:
            raise ProjectionConflictError(
                "include() is already set; pass replace=True to switch to select()"
            )
        self._projection = Select(dict(select))
        return self

    # -- introspection --

    @property
    def search_mode(self) -> SearchMode:
        return self._search

    @property
    def projection(self) -> Projection:
        return self._projection

    @property
    def filters(self) -> dict:
        return dict(self._filters)

    # -- compilation --

    def build_where(self) -> dict:
        where: dict[str, Any] = dict(self._filters)
        if isinstance(self._search, TextSearch):
            conditions = [
                {field: {"contains": self._search.term, "mode": INSENSITIVE}}
                for field in self._search.fields
            ]
            if self._search.term and conditions:
                if "OR" in where:
                    where["AND"] = [*_as_list(where.get("AND")), {"OR": conditions}]
                else:
                    where["OR"] = conditions
        elif isinstance(self._search, AdvancedSearch):
            conditions = compile_filters(list(self._search.filters))
            if conditions:
                where["AND"] = [*_as_list(where.get("AND")), *conditions]
        return where

    def build_order_by(self) -> dict[str, str]:
        return dict(self._order_by or DEFAULT_ORDER_BY)

    def _limit_value(self) -> int:
        return clamp_limit(self._limit)

    def _offset_value(self) -> int:
        return max(self._offset or 0, 0)

    async def execute(self) -> PaginatedResult[Any]:
        limit = self._limit_value()
        offset = self._offset_value()
        where = self.build_where()
        order_by = self.build_order_by()

        kwargs: dict[str, Any] = {}
        if isinstance(self._projection, Include):
            kwargs["include"] = self._projection.relations
        elif isinstance(self._projection, Select):
            kwargs["select"] = self._projection.fields

        logger.debug(
            "Executing %r where=%s order_by=%s take=%d skip=%d",
            self.collection, where, order_by, limit, offset,
        )
        tasks = [
            asyncio.ensure_future(self.collection.find_many(
                where=where, order_by=order_by, take=limit, skip=offset, **kwargs,
            )),
            asyncio.ensure_future(self.collection.count(where=where)),
        ]
        try:
            data, total = await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return PaginatedResult[Any](data=list(data), **paginate_meta(limit, offset, total))


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def create_query_builder(collection: Collection, **options) -> QueryBuilder:
    return QueryBuilder(collection, **options)


async def list_query(collection: Collection, **options) -> PaginatedResult[Any]:
    return await create_query_builder(collection, **options).execute()


async def advanced_search_query(
    collection: Collection, filters: list, **options
) -> PaginatedResult[Any]:
    return await create_query_builder(collection, **options).search(filters).execute()


async def text_search_query(
    collection: Collection, term: str, fields: list[str], **options
) -> PaginatedResult[Any]:
    return await create_query_builder(collection, **options).search_text(term, fields).execute()


async def filtered_query(
    collection: Collection, filters: dict, **options
) -> PaginatedResult[Any]:
    return await create_query_builder(collection, **options).filter(filters).execute()
