"""File metadata list endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from menuadmin.core.deps import get_collections, get_current_user, require_role
from menuadmin.database import get_session_factory
from menuadmin.models.enums import UserRole
from menuadmin.models.file import File
from menuadmin.services.collection import CollectionFactory
from menuadmin.services.entity_queries import FileQueryBuilder
from menuadmin.services.list_endpoint import (
    LIST_ENDPOINT_CONFIGS,
    FileListRequest,
    create_list_endpoint,
)

router = APIRouter(prefix="/files", tags=["files"])

_list_files = create_list_endpoint(LIST_ENDPOINT_CONFIGS["file"])


@router.post("/list", response_model=dict)
async def list_files(
    data: FileListRequest,
    collections: Annotated[CollectionFactory, Depends(get_collections)],
    current_user: Annotated[dict, Depends(require_role(UserRole.ADMIN, UserRole.STORE_ADMIN))],
):
    """List uploaded files with pagination, search and filters."""
    result = await _list_files(collections.for_model(File), data, current_user)
    return {"success": True, "data": result.to_response()}


@router.get("/mine", response_model=dict)
async def list_my_files(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
    current_user: Annotated[dict, Depends(get_current_user)],
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    mime_type: list[str] | None = Query(None),
):
    """Files uploaded by the current user."""
    builder = (
        FileQueryBuilder.bind(session_factory)
        .by_owner(current_user["id"])
        .paginate(limit, offset)
    )
    if mime_type:
        builder.by_file_type(mime_type)
    result = await builder.execute()
    return {"success": True, "data": result.to_response()}
