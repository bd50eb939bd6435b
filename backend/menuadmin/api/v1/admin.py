"""Generated CRUD endpoints for every model description."""

from fastapi import APIRouter

from menuadmin.services.model_configs import generate_all

router = APIRouter(prefix="/admin")

GENERATED_MODELS = generate_all()

for _generated in GENERATED_MODELS.values():
    router.include_router(_generated.router)
