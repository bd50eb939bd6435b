"""Generic list endpoints over a query builder.

``ListEndpointBuilder`` turns a ``ListEndpointConfig`` into an async handler
that checks access, applies search and filters, executes the query and
post-processes the rows.
"""

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from menuadmin.config import settings
from menuadmin.core.exceptions import AccessDeniedError
from menuadmin.models.enums import StorageType, UserRole
from menuadmin.models.file import File
from menuadmin.models.store import Store
from menuadmin.models.user import User
from menuadmin.schemas.query import ListRequest, PaginatedResult
from menuadmin.services.collection import Collection
from menuadmin.services.query_builder import MAX_LIMIT, QueryBuilder

logger = logging.getLogger(__name__)

AccessCheck = Callable[[Any], bool | Awaitable[bool]]


@dataclass(frozen=True)
class ListEndpointConfig:
    model: type | None = None
    search_fields: tuple[str, ...] = ()
    default_filters: dict = field(default_factory=dict)
    default_includes: dict | None = None
    default_order_by: dict[str, str] | None = None
    max_limit: int = min(settings.QUERY_MAX_LIMIT, MAX_LIMIT)
    transform_data: Callable[[list], list] | None = None
    validate_access: AccessCheck | None = None
    custom_filters: Callable[[ListRequest], dict] | None = None


ListHandler = Callable[..., Awaitable[PaginatedResult[Any]]]


class ListEndpointBuilder:
    def __init__(self, config: ListEndpointConfig):
        self.config = config

    async def _check_access(self, user: Any) -> None:
        if self.config.validate_access is None:
            return
        allowed = self.config.validate_access(user)
        if inspect.isawaitable(allowed):
            allowed = await allowed
        if not allowed:
            raise AccessDeniedError("Access denied")

    def _builder(self, collection: Collection, request: ListRequest) -> QueryBuilder:
        cfg = self.config
        return QueryBuilder(
            collection,
            limit=min(request.limit, cfg.max_limit),
            offset=request.offset,
            order_by=request.order_by_map() or cfg.default_order_by,
            include=cfg.default_includes,
            filters=cfg.default_filters,
        )

    def create_list_endpoint(self) -> ListHandler:
        cfg = self.config

        async def handler(
            collection: Collection, request: ListRequest, user: Any = None
        ) -> PaginatedResult[Any]:
            await self._check_access(user)

            builder = self._builder(collection, request)
            if request.advanced_search:
                builder.search(request.advanced_search)
            elif request.search and cfg.search_fields:
                builder.search_text(request.search, list(cfg.search_fields))

            if cfg.custom_filters is not None:
                builder.filter(cfg.custom_filters(request))

            try:
                result = await builder.execute()
            except SQLAlchemyError:
                logger.exception("List query failed for %r", collection)
                raise

            if cfg.transform_data is None:
                return result
            return result.model_copy(update={"data": list(cfg.transform_data(result.data))})

        return handler


def create_list_endpoint(config: ListEndpointConfig) -> ListHandler:
    return ListEndpointBuilder(config).create_list_endpoint()


# ── Entity list requests and configurations ──────────────────────────


class StoreListRequest(ListRequest):
    active: bool | None = None
    store_type_id: uuid.UUID | None = None
    user_id: uuid.UUID | None = None


class UserListRequest(ListRequest):
    role: UserRole | None = None
    active: bool | None = None


class FileListRequest(ListRequest):
    published: bool | None = None
    storage_type: StorageType | None = None
    owner_id: uuid.UUID | None = None


def _present(request: ListRequest, *names: str) -> dict:
    filters = {}
    for name in names:
        value = getattr(request, name)
        if value is not None:
            filters[name] = value.value if hasattr(value, "value") else value
    return filters


LIST_ENDPOINT_CONFIGS: dict[str, ListEndpointConfig] = {
    "store": ListEndpointConfig(
        model=Store,
        search_fields=("title",),
        default_filters={"deleted_at": None},
        default_includes={
            "store_type": True,
            "user": {"select": {"id": True, "username": True}},
            "branches": {"where": {"deleted_at": None}},
        },
        default_order_by={"created_at": "desc"},
        custom_filters=lambda r: _present(r, "active", "store_type_id", "user_id"),
    ),
    "user": ListEndpointConfig(
        model=User,
        search_fields=("username",),
        default_filters={"deleted_at": None},
        default_includes={"profile": True},
        default_order_by={"created_at": "desc"},
        transform_data=lambda rows: [
            {k: v for k, v in row.items() if k != "password"} for row in rows
        ],
        custom_filters=lambda r: _present(r, "role", "active"),
    ),
    "file": ListEndpointConfig(
        model=File,
        search_fields=("name",),
        default_filters={"deleted_at": None},
        default_includes={"owner": {"select": {"id": True, "username": True}}},
        default_order_by={"created_at": "desc"},
        custom_filters=lambda r: _present(r, "published", "storage_type", "owner_id"),
    ),
}
