"""User list endpoints (admin only)."""

from typing import Annotated

from fastapi import APIRouter, Depends

from menuadmin.core.deps import get_collections, require_role
from menuadmin.models.enums import UserRole
from menuadmin.models.user import User
from menuadmin.services.collection import CollectionFactory
from menuadmin.services.list_endpoint import (
    LIST_ENDPOINT_CONFIGS,
    UserListRequest,
    create_list_endpoint,
)

router = APIRouter(prefix="/users", tags=["users"])

_list_users = create_list_endpoint(LIST_ENDPOINT_CONFIGS["user"])


@router.post("/list", response_model=dict)
async def list_users(
    data: UserListRequest,
    collections: Annotated[CollectionFactory, Depends(get_collections)],
    current_user: Annotated[dict, Depends(require_role(UserRole.ADMIN))],
):
    """List users with pagination, search and filters."""
    result = await _list_users(collections.for_model(User), data, current_user)
    return {"success": True, "data": result.to_response()}
