"""Read-only menu browsing: categories of a store and item search."""

import uuid
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from menuadmin.core.deps import get_current_user
from menuadmin.database import get_session_factory
from menuadmin.services.entity_queries import CategoryQueryBuilder, ItemQueryBuilder

router = APIRouter(prefix="/menu", tags=["menu"])


@router.get("/stores/{store_id}/categories", response_model=dict)
async def list_store_categories(
    store_id: uuid.UUID,
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    _user: Annotated[dict, Depends(get_current_user)],
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    active: bool | None = None,
):
    """Categories of one store with their items, by position."""
    builder = (
        CategoryQueryBuilder.bind(session_factory)
        .by_store(store_id)
        .order_by({"position": "asc"})
        .paginate(limit, offset)
        .with_relations()
    )
    if active is not None:
        builder.by_active_status(active)
    result = await builder.execute()
    return {"success": True, "data": result.to_response()}


@router.get("/items", response_model=dict)
async def search_items(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    _user: Annotated[dict, Depends(get_current_user)],
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    category_id: uuid.UUID | None = None,
    store_title: str | None = Query(None, max_length=255),
    min_price: Decimal | None = Query(None, ge=0),
    max_price: Decimal | None = Query(None, ge=0),
    active: bool | None = None,
):
    """Search menu items; every given parameter narrows the result."""
    builder = ItemQueryBuilder.bind(session_factory).paginate(limit, offset).with_relations()
    if category_id is not None:
        builder.by_category(category_id)
    if active is not None:
        builder.by_active_status(active)
    if store_title:
        builder.by_store_title(store_title)
    builder.by_price_range(min_price, max_price)
    result = await builder.execute()
    return {"success": True, "data": result.to_response()}
