"""API v1 router that aggregates all sub-routers."""

from fastapi import APIRouter

from menuadmin.api.v1.admin import router as admin_router
from menuadmin.api.v1.files import router as files_router
from menuadmin.api.v1.menu import router as menu_router
from menuadmin.api.v1.stores import router as stores_router
from menuadmin.api.v1.users import router as users_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(stores_router)
api_router.include_router(users_router)
api_router.include_router(files_router)
api_router.include_router(menu_router)
api_router.include_router(admin_router)
