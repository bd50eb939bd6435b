"""Store list endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from menuadmin.core.deps import get_collections, get_current_user, require_role
from menuadmin.database import get_session_factory
from menuadmin.models.enums import UserRole
from menuadmin.models.store import Store
from menuadmin.services.collection import CollectionFactory
from menuadmin.services.entity_queries import StoreQueryBuilder
from menuadmin.services.list_endpoint import (
    LIST_ENDPOINT_CONFIGS,
    StoreListRequest,
    create_list_endpoint,
)

router = APIRouter(prefix="/stores", tags=["stores"])

_list_stores = create_list_endpoint(LIST_ENDPOINT_CONFIGS["store"])


@router.post("/list", response_model=dict)
async def list_stores(
    data: StoreListRequest,
    collections: Annotated[CollectionFactory, Depends(get_collections)],
    current_user: Annotated[dict, Depends(require_role(UserRole.ADMIN))],
):
    """List stores with pagination, search and filters (admin only)."""
    result = await _list_stores(collections.for_model(Store), data, current_user)
    return {"success": True, "data": result.to_response()}


@router.get("/mine", response_model=dict)
async def list_my_stores(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    current_user: Annotated[dict, Depends(get_current_user)],
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    search: str | None = Query(None, max_length=200),
    active: bool | None = None,
):
    """Stores owned by the current user, with their active branches."""
    builder = (
        StoreQueryBuilder.bind(session_factory)
        .by_user(current_user["id"])
        .paginate(limit, offset)
        .with_relations()
    )
    if search:
        builder.search_stores(search)
    if active is not None:
        builder.by_active_status(active)
    result = await builder.execute()
    return {"success": True, "data": result.to_response()}
