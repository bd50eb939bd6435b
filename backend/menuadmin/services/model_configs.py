"""Model descriptions for the admin CRUD endpoints."""

from menuadmin.core.security import hash_password
from menuadmin.models.enums import UserRole
from menuadmin.models.file import File
from menuadmin.models.menu import Category, Item
from menuadmin.models.store import Store
from menuadmin.models.user import User
from menuadmin.services.model_builder import (
    FieldValidation,
    GeneratedModel,
    ModelDescription,
    ModelField,
    Permissions,
    RelationBinding,
    generate_model,
)

ADMIN = (UserRole.ADMIN.value,)
ADMIN_OR_STORE = (UserRole.ADMIN.value, UserRole.STORE_ADMIN.value)

NOT_DELETED = {"deleted_at": None}

MODEL_CONFIGS: dict[str, ModelDescription] = {
    "store": ModelDescription(
        name="store",
        table_name="store",
        model=Store,
        fields=(
            ModelField(
                name="title", type="string", required=True, searchable=True,
                filterable=True, sortable=True,
                validation=FieldValidation(min_length=1, max_length=255),
            ),
            ModelField(name="description", type="string"),
            ModelField(name="active", type="boolean", filterable=True, default=False),
            ModelField(
                name="user_id", type="relation", required=True, filterable=True,
                relation=RelationBinding(model="user"),
            ),
            ModelField(
                name="store_type_id", type="relation", required=True, filterable=True,
                relation=RelationBinding(model="store_type"),
            ),
            ModelField(
                name="created_at", type="date", filterable=True, sortable=True, read_only=True,
            ),
        ),
        search_fields=("title",),
        default_filters=NOT_DELETED,
        default_includes={
            "store_type": True,
            "user": {"select": {"id": True, "username": True}},
            "branches": {"where": {"deleted_at": None, "active": True}},
        },
        soft_delete=True,
        audit=True,
        permissions=Permissions(
            create=ADMIN, read=ADMIN_OR_STORE, update=ADMIN, delete=ADMIN, list=ADMIN,
        ),
    ),
    "user": ModelDescription(
        name="user",
        table_name="user",
        model=User,
        fields=(
            ModelField(
                name="username", type="string", required=True, searchable=True,
                filterable=True, validation=FieldValidation(min_length=3, max_length=50),
            ),
            ModelField(
                name="password", type="string", required=True, hidden=True,
                validation=FieldValidation(min_length=8, max_length=128),
                transform=hash_password,
            ),
            ModelField(
                name="role", type="string", required=True, filterable=True,
                validation=FieldValidation(enum=tuple(r.value for r in UserRole)),
            ),
            ModelField(name="active", type="boolean", filterable=True, default=False),
        ),
        search_fields=("username",),
        default_filters=NOT_DELETED,
        default_includes={"profile": True},
        soft_delete=True,
        audit=True,
        permissions=Permissions(
            create=ADMIN, read=ADMIN, update=ADMIN, delete=ADMIN, list=ADMIN,
        ),
    ),
    "file": ModelDescription(
        name="file",
        table_name="file",
        model=File,
        fields=(
            ModelField(
                name="name", type="string", required=True, searchable=True,
                filterable=True, validation=FieldValidation(max_length=255),
            ),
            ModelField(name="path", type="string", required=True),
            ModelField(
                name="size", type="number", required=True, filterable=True,
                validation=FieldValidation(min=0),
            ),
            ModelField(name="mime_type", type="string", required=True, filterable=True),
            ModelField(name="published", type="boolean", filterable=True, default=False),
            ModelField(
                name="storage_type", type="string", filterable=True, default="local",
                validation=FieldValidation(enum=("local", "s3")),
            ),
            ModelField(
                name="owner_id", type="relation", required=True, filterable=True,
                relation=RelationBinding(model="user"),
            ),
        ),
        search_fields=("name",),
        default_filters=NOT_DELETED,
        default_includes={"owner": {"select": {"id": True, "username": True}}},
        soft_delete=True,
        permissions=Permissions(
            create=ADMIN_OR_STORE, read=ADMIN_OR_STORE, update=ADMIN_OR_STORE,
            delete=ADMIN, list=ADMIN_OR_STORE,
        ),
    ),
    "category": ModelDescription(
        name="category",
        table_name="category",
        plural="categories",
        model=Category,
        fields=(
            ModelField(
                name="title", type="string", required=True, searchable=True,
                filterable=True, validation=FieldValidation(min_length=1, max_length=255),
            ),
            ModelField(
                name="store_id", type="relation", required=True, filterable=True,
                relation=RelationBinding(model="store"),
            ),
            ModelField(name="position", type="number", sortable=True, default=0),
            ModelField(name="active", type="boolean", filterable=True, default=True),
        ),
        search_fields=("title",),
        default_includes={"store": {"select": {"id": True, "title": True}}},
        default_order_by={"position": "asc"},
        soft_delete=True,
        permissions=Permissions(
            create=ADMIN_OR_STORE, update=ADMIN_OR_STORE, delete=ADMIN_OR_STORE,
        ),
    ),
    "item": ModelDescription(
        name="item",
        table_name="item",
        model=Item,
        fields=(
            ModelField(
                name="title", type="string", required=True, searchable=True,
                filterable=True, validation=FieldValidation(min_length=1, max_length=255),
            ),
            ModelField(name="description", type="string", searchable=True),
            ModelField(
                name="price", type="number", required=True, sortable=True,
                validation=FieldValidation(min=0),
            ),
            ModelField(name="active", type="boolean", filterable=True, default=True),
            ModelField(
                name="category_id", type="relation", required=True, filterable=True,
                relation=RelationBinding(model="category"),
            ),
        ),
        search_fields=("title", "description"),
        default_includes={"category": {"select": {"id": True, "title": True}}},
        soft_delete=True,
        permissions=Permissions(
            create=ADMIN_OR_STORE, update=ADMIN_OR_STORE, delete=ADMIN_OR_STORE,
        ),
    ),
}


def generate_model_from_config(name: str) -> GeneratedModel:
    try:
        description = MODEL_CONFIGS[name]
    except KeyError:
        raise KeyError(f"No model description named {name!r}")
    return generate_model(description)


def generate_all() -> dict[str, GeneratedModel]:
    return {name: generate_model(d) for name, d in MODEL_CONFIGS.items()}
