"""Model-driven CRUD generation.

A ``ModelDescription`` is static metadata about one entity. ``ModelBuilder``
interprets it once, at application start, into pydantic schemas, a query
builder specification, CRUD handlers and a FastAPI router. Nothing is
generated as source text; handlers read the description directly.
"""

import inspect
import keyword
import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional

import sqlalchemy as sa
from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from menuadmin.core.deps import check_roles, get_collections, get_current_user
from menuadmin.core.exceptions import ModelDescriptionError, NotFoundError
from menuadmin.models.enums import UserRole
from menuadmin.schemas.query import FilterSpec, ListRequest, PaginatedResult
from menuadmin.services.collection import Collection, CollectionFactory
from menuadmin.services.operators import build_condition
from menuadmin.services.query_builder import QueryBuilder

logger = logging.getLogger(__name__)

FieldType = Literal["string", "number", "boolean", "date", "array", "object", "relation"]
Operation = Literal["create", "read", "update", "delete", "list"]

FIELD_TYPES = {"string", "number", "boolean", "date", "array", "object", "relation"}


# ── Description ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class FieldValidation:
    min: float | None = None
    max: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    enum: tuple[str, ...] | None = None


@dataclass(frozen=True)
class RelationBinding:
    model: str | None
    type: Literal["one", "many"] = "one"
    field: str | None = None


@dataclass(frozen=True)
class ModelField:
    name: str
    type: FieldType
    required: bool = False
    searchable: bool = False
    filterable: bool = False
    sortable: bool = False
    hidden: bool = False
    read_only: bool = False
    validation: FieldValidation | None = None
    relation: RelationBinding | None = None
    default: Any = None
    transform: Callable[[Any], Any] | None = None


@dataclass(frozen=True)
class Permissions:
    create: tuple[str, ...] = ()
    read: tuple[str, ...] = ()
    update: tuple[str, ...] = ()
    delete: tuple[str, ...] = ()
    list: tuple[str, ...] = ()

    def roles_for(self, operation: Operation) -> tuple[str, ...]:
        return getattr(self, operation)


@dataclass(frozen=True)
class ModelHooks:
    """Callables run around writes; sync or async, returning the new value or None."""

    before_create: Callable | None = None
    after_create: Callable | None = None
    before_update: Callable | None = None
    after_update: Callable | None = None
    before_delete: Callable | None = None
    after_delete: Callable | None = None


@dataclass(frozen=True)
class ModelDescription:
    name: str
    table_name: str
    fields: tuple[ModelField, ...]
    model: type | None = None
    search_fields: tuple[str, ...] = ()
    default_filters: dict = field(default_factory=dict)
    default_includes: dict = field(default_factory=dict)
    default_order_by: dict = field(default_factory=lambda: {"created_at": "desc"})
    soft_delete: bool = False
    audit: bool = False
    permissions: Permissions = field(default_factory=Permissions)
    hooks: ModelHooks = field(default_factory=ModelHooks)
    plural: str | None = None

    @property
    def title(self) -> str:
        return self.name[:1].upper() + self.name[1:]

    @property
    def plural_title(self) -> str:
        plural = self.plural or f"{self.name}s"
        return plural[:1].upper() + plural[1:]

    @property
    def route_prefix(self) -> str:
        plural = self.plural or f"{self.table_name}s"
        return "/" + plural.replace("_", "-")


# ── Generated artefacts ──────────────────────────────────────────────


@dataclass(frozen=True)
class GeneratedSchemas:
    create: type[BaseModel]
    update: type[BaseModel]
    list: type[ListRequest]
    get_by_id: type[BaseModel]
    delete: type[BaseModel]
    search_filter: Any = FilterSpec


@dataclass(frozen=True)
class FilterMethod:
    """One list filter derived from a filterable field.

    ``equals`` filters on the value, ``range`` takes a (start, end) pair,
    ``in`` takes a list of values.
    """

    name: str
    field: str
    kind: Literal["equals", "range", "in"]

    def apply(self, builder: QueryBuilder, value: Any) -> QueryBuilder:
        if self.kind == "range":
            return builder.filter({self.field: build_condition("between", list(value))})
        if self.kind == "in":
            return builder.filter({self.field: build_condition("in", value)})
        return builder.filter({self.field: value})


@dataclass(frozen=True)
class QueryBuilderSpec:
    class_name: str
    search_fields: tuple[str, ...]
    base_filters: dict
    default_includes: dict
    default_order_by: dict
    filter_methods: tuple[FilterMethod, ...]

    def build(self, collection: Collection) -> QueryBuilder:
        return QueryBuilder(
            collection,
            filters=self.base_filters,
            order_by=self.default_order_by,
            include=self.default_includes or None,
        )


@dataclass(frozen=True)
class GeneratedModel:
    description: ModelDescription
    schemas: GeneratedSchemas
    query_builder_spec: QueryBuilderSpec
    types: dict
    router: APIRouter

    def handlers(self, collection: Collection) -> "CrudHandlers":
        return CrudHandlers(self.description, self.query_builder_spec, collection)


# ── Handlers ─────────────────────────────────────────────────────────


async def _run_hook(hook: Callable | None, value: Any) -> Any:
    if hook is None:
        return value
    result = hook(value)
    if inspect.isawaitable(result):
        result = await result
    return value if result is None else result


class CrudHandlers:
    """create / get / list / update / delete for one generated model."""

    def __init__(
        self,
        description: ModelDescription,
        query_builder_spec: QueryBuilderSpec,
        collection: Collection,
    ):
        self.description = description
        self.query_builder_spec = query_builder_spec
        self.collection = collection
        self._hidden = {f.name for f in self.description.fields if f.hidden}
        self._transforms = {
            f.name: f.transform for f in self.description.fields if f.transform
        }

    def _include(self) -> dict | None:
        return self.description.default_includes or None

    def _live_where(self, entity_id: uuid.UUID) -> dict:
        where: dict = {"id": entity_id}
        if self.description.soft_delete:
            where["deleted_at"] = None
        return where

    def _public(self, row: dict) -> dict:
        return {k: v for k, v in row.items() if k not in self._hidden}

    def _transform(self, data: dict) -> dict:
        return {
            k: self._transforms[k](v) if k in self._transforms and v is not None else v
            for k, v in data.items()
        }

    def _audit(self, action: str, user: dict, entity_id: Any) -> None:
        if self.description.audit:
            logger.info(
                "audit action=%s entity=%s id=%s user=%s",
                action, self.description.name, entity_id, user.get("id"),
            )

    async def _require(self, entity_id: uuid.UUID) -> dict:
        row = await self.collection.find_first(where=self._live_where(entity_id))
        if row is None:
            raise NotFoundError(f"{self.description.title} not found")
        return row

    async def create(self, user: dict, data: BaseModel) -> dict:
        check_roles(user, self.description.permissions.create)
        hooks = self.description.hooks
        values = self._transform(data.model_dump(exclude_none=True))
        values = await _run_hook(hooks.before_create, values)
        try:
            row = await self.collection.create(data=values, include=self._include())
        except SQLAlchemyError:
            logger.exception("Failed to create %s", self.description.name)
            raise
        row = await _run_hook(hooks.after_create, row)
        logger.info("Created %s %s", self.description.name, row.get("id"))
        self._audit("create", user, row.get("id"))
        return self._public(row)

    async def get(self, user: dict, entity_id: uuid.UUID) -> dict:
        check_roles(user, self.description.permissions.read)
        row = await self.collection.find_first(
            where=self._live_where(entity_id), include=self._include(),
        )
        if row is None:
            raise NotFoundError(f"{self.description.title} not found")
        return self._public(row)

    async def list(self, user: dict, request: ListRequest) -> PaginatedResult[Any]:
        check_roles(user, self.description.permissions.list)
        spec = self.query_builder_spec
        builder = spec.build(self.collection).paginate(request.limit, request.offset)
        order_by = request.order_by_map()
        if order_by:
            builder.order_by(order_by)

        if request.advanced_search:
            builder.search(request.advanced_search)
        elif request.search and spec.search_fields:
            builder.search_text(request.search, list(spec.search_fields))

        for method in spec.filter_methods:
            value = getattr(request, method.field, None)
            if value is not None:
                method.apply(builder, value)

        try:
            result = await builder.execute()
        except SQLAlchemyError:
            logger.exception("Failed to list %s", self.description.name)
            raise
        return result.model_copy(update={"data": [self._public(r) for r in result.data]})

    async def update(self, user: dict, data: BaseModel) -> dict:
        check_roles(user, self.description.permissions.update)
        hooks = self.description.hooks
        values = data.model_dump(exclude_unset=True)
        entity_id = values.pop("id")
        await self._require(entity_id)

        values = self._transform(values)
        values = await _run_hook(hooks.before_update, values)
        try:
            row = await self.collection.update(
                where={"id": entity_id}, data=values, include=self._include(),
            )
        except SQLAlchemyError:
            logger.exception("Failed to update %s %s", self.description.name, entity_id)
            raise
        row = await _run_hook(hooks.after_update, row)
        logger.info("Updated %s %s", self.description.name, entity_id)
        self._audit("update", user, entity_id)
        return self._public(row)

    async def delete(self, user: dict, entity_id: uuid.UUID) -> dict:
        check_roles(user, self.description.permissions.delete)
        hooks = self.description.hooks
        row = await self._require(entity_id)
        await _run_hook(hooks.before_delete, row)
        try:
            if self.description.soft_delete:
                await self.collection.update(
                    where={"id": entity_id},
                    data={"deleted_at": datetime.now(timezone.utc)},
                )
            else:
                await self.collection.delete(where={"id": entity_id})
        except SQLAlchemyError:
            logger.exception("Failed to delete %s %s", self.description.name, entity_id)
            raise
        await _run_hook(hooks.after_delete, row)
        logger.info("Deleted %s %s", self.description.name, entity_id)
        self._audit("delete", user, entity_id)
        return {
            "success": True,
            "message": f"{self.description.title} deleted successfully",
        }


# ── Builder ──────────────────────────────────────────────────────────


_SCHEMA_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


def _value_type(f: ModelField) -> Any:
    v = f.validation or FieldValidation()
    if f.type == "string":
        if v.enum:
            return Literal[tuple(v.enum)]
        return Annotated[
            str, Field(min_length=v.min_length, max_length=v.max_length, pattern=v.pattern)
        ]
    if f.type == "number":
        return Annotated[float, Field(ge=v.min, le=v.max)]
    if f.type == "boolean":
        return bool
    if f.type == "date":
        return datetime
    if f.type == "array":
        return list[Any]
    if f.type == "object":
        return dict[str, Any]
    return uuid.UUID


def _filter_type(f: ModelField) -> Any:
    if f.type == "date":
        return tuple[datetime, datetime]
    if f.type == "array":
        return list[str]
    if f.type == "string" and f.validation and f.validation.enum:
        return Literal[tuple(f.validation.enum)]
    return {
        "string": str,
        "number": float,
        "boolean": bool,
        "relation": uuid.UUID,
    }.get(f.type, Any)


def _filter_kind(f: ModelField) -> Literal["equals", "range", "in"]:
    if f.type == "date":
        return "range"
    if f.type == "array":
        return "in"
    return "equals"


class ModelBuilder:
    def __init__(self, description: ModelDescription):
        self.description = description

    # -- validation --

    def validate(self) -> None:
        d = self.description
        if not d.name.isidentifier() or keyword.iskeyword(d.name):
            raise ModelDescriptionError(f"Invalid model name: {d.name!r}")
        if not d.fields:
            raise ModelDescriptionError(f"{d.name}: a model needs at least one field")

        names: set[str] = set()
        for f in d.fields:
            where = f"{d.name}.{f.name}"
            if not f.name.isidentifier():
                raise ModelDescriptionError(f"Invalid field name: {where}")
            if f.name == "id":
                raise ModelDescriptionError(f"{where}: 'id' is reserved")
            if f.name in names:
                raise ModelDescriptionError(f"Duplicate field: {where}")
            names.add(f.name)
            if f.type not in FIELD_TYPES:
                raise ModelDescriptionError(f"{where}: unknown type {f.type!r}")
            if f.type == "relation" and (f.relation is None or not f.relation.model):
                raise ModelDescriptionError(f"{where}: relation field has no bound model")
            if f.read_only and f.required:
                raise ModelDescriptionError(f"{where}: a read-only field cannot be required")
            self._validate_bounds(where, f)

        for name in d.search_fields:
            if name not in names:
                raise ModelDescriptionError(f"{d.name}: unknown search field {name!r}")

        for operation in ("create", "read", "update", "delete", "list"):
            for role in d.permissions.roles_for(operation):
                try:
                    UserRole(role)
                except ValueError:
                    raise ModelDescriptionError(
                        f"{d.name}: unknown role {role!r} for {operation}"
                    )

        for key, direction in d.default_order_by.items():
            if direction not in ("asc", "desc"):
                raise ModelDescriptionError(f"{d.name}: bad sort direction for {key}")

        if d.model is not None:
            self._validate_mapping(names)

    def _validate_bounds(self, where: str, f: ModelField) -> None:
        v = f.validation
        if v is None:
            return
        if v.min is not None and v.max is not None and v.min > v.max:
            raise ModelDescriptionError(f"{where}: min is greater than max")
        if (
            v.min_length is not None
            and v.max_length is not None
            and v.min_length > v.max_length
        ):
            raise ModelDescriptionError(f"{where}: min_length is greater than max_length")
        if v.pattern is not None:
            try:
                re.compile(v.pattern)
            except re.error as exc:
                raise ModelDescriptionError(f"{where}: invalid pattern ({exc})")
        if v.enum is not None and (f.type != "string" or not v.enum):
            raise ModelDescriptionError(f"{where}: enum needs a string field and values")

    def _validate_mapping(self, names: set[str]) -> None:
        d = self.description
        mapper = sa.inspect(d.model)
        columns = {attr.key for attr in mapper.column_attrs}
        missing = sorted(names - columns)
        if missing:
            raise ModelDescriptionError(
                f"{d.name}: fields not mapped on {d.model.__name__}: {', '.join(missing)}"
            )
        if d.soft_delete and "deleted_at" not in columns:
            raise ModelDescriptionError(f"{d.name}: soft delete needs a deleted_at column")
        for relation in d.default_includes:
            if relation not in mapper.relationships:
                raise ModelDescriptionError(f"{d.name}: unknown include {relation!r}")

    # -- schemas --

    def generate_schemas(self) -> GeneratedSchemas:
        d = self.description
        title = d.title
        plural = d.plural_title

        create_fields: dict[str, Any] = {}
        update_fields: dict[str, Any] = {}
        list_fields: dict[str, Any] = {}
        for f in d.fields:
            if f.filterable:
                list_fields[f.name] = (Optional[_filter_type(f)], None)
            if f.read_only:
                continue
            value_type = _value_type(f)
            if f.required:
                create_fields[f.name] = (value_type, ...)
            else:
                create_fields[f.name] = (Optional[value_type], f.default)
            # An omitted field stays unset; an explicit null must fit the column.
            if self._accepts_null(f):
                update_fields[f.name] = (Optional[value_type], None)
            else:
                update_fields[f.name] = (value_type, None)

        id_field = (uuid.UUID, ...)
        return GeneratedSchemas(
            create=create_model(f"Create{title}Input", __config__=_SCHEMA_CONFIG, **create_fields),
            update=create_model(
                f"Update{title}Input", __config__=_SCHEMA_CONFIG, id=id_field, **update_fields,
            ),
            list=create_model(f"List{plural}Input", __base__=ListRequest, **list_fields),
            get_by_id=create_model(f"Get{title}ByIdInput", __config__=_SCHEMA_CONFIG, id=id_field),
            delete=create_model(f"Delete{title}Input", __config__=_SCHEMA_CONFIG, id=id_field),
        )

    def _accepts_null(self, f: ModelField) -> bool:
        if f.required:
            return False
        model = self.description.model
        if model is None:
            return True
        return bool(sa.inspect(model).column_attrs[f.name].columns[0].nullable)

    def generate_query_builder_spec(self) -> QueryBuilderSpec:
        d = self.description
        base_filters = dict(d.default_filters)
        if d.soft_delete:
            base_filters.setdefault("deleted_at", None)
        methods = tuple(
            FilterMethod(
                name=f"by_{f.name}" + ("_range" if _filter_kind(f) == "range" else ""),
                field=f.name,
                kind=_filter_kind(f),
            )
            for f in d.fields
            if f.filterable
        )
        search_fields = d.search_fields or tuple(f.name for f in d.fields if f.searchable)
        return QueryBuilderSpec(
            class_name=f"{d.title}QueryBuilder",
            search_fields=search_fields,
            base_filters=base_filters,
            default_includes=dict(d.default_includes),
            default_order_by=dict(d.default_order_by),
            filter_methods=methods,
        )

    def generate_types(self) -> dict:
        title = self.description.title
        plural = self.description.plural_title
        return {
            "input": {
                "create": f"Create{title}Input",
                "update": f"Update{title}Input",
                "list": f"List{plural}Input",
                "get_by_id": f"Get{title}ByIdInput",
                "delete": f"Delete{title}Input",
            },
            "output": {
                "create": f"Create{title}Output",
                "update": f"Update{title}Output",
                "list": f"List{plural}Output",
                "get_by_id": f"Get{title}ByIdOutput",
                "delete": f"Delete{title}Output",
            },
        }

    # -- router --

    def generate_router(
        self, schemas: GeneratedSchemas, query_builder_spec: QueryBuilderSpec
    ) -> APIRouter:
        d = self.description
        router = APIRouter(prefix=d.route_prefix, tags=[d.name])

        CreateInput = schemas.create
        UpdateInput = schemas.update
        ListInput = schemas.list
        GetInput = schemas.get_by_id
        DeleteInput = schemas.delete

        def handlers(collections: CollectionFactory) -> CrudHandlers:
            if d.model is None:
                raise RuntimeError(f"{d.name} has no mapped model to serve")
            return CrudHandlers(d, query_builder_spec, collections.for_model(d.model))

        async def create_endpoint(
            data: CreateInput,
            user: Annotated[dict, Depends(get_current_user)],
            collections: Annotated[CollectionFactory, Depends(get_collections)],
        ):
            row = await handlers(collections).create(user, data)
            return {"success": True, "data": jsonable_encoder(row)}

        async def get_endpoint(
            data: GetInput,
            user: Annotated[dict, Depends(get_current_user)],
            collections: Annotated[CollectionFactory, Depends(get_collections)],
        ):
            row = await handlers(collections).get(user, data.id)
            return {"success": True, "data": jsonable_encoder(row)}

        async def list_endpoint(
            data: ListInput,
            user: Annotated[dict, Depends(get_current_user)],
            collections: Annotated[CollectionFactory, Depends(get_collections)],
        ):
            result = await handlers(collections).list(user, data)
            return {"success": True, "data": result.to_response()}

        async def update_endpoint(
            data: UpdateInput,
            user: Annotated[dict, Depends(get_current_user)],
            collections: Annotated[CollectionFactory, Depends(get_collections)],
        ):
            row = await handlers(collections).update(user, data)
            return {"success": True, "data": jsonable_encoder(row)}

        async def delete_endpoint(
            data: DeleteInput,
            user: Annotated[dict, Depends(get_current_user)],
            collections: Annotated[CollectionFactory, Depends(get_collections)],
        ):
            return await handlers(collections).delete(user, data.id)

        router.add_api_route(
            "/create", create_endpoint, methods=["POST"],
            status_code=status.HTTP_201_CREATED, response_model=dict,
            summary=f"Create {d.name}",
        )
        router.add_api_route(
            "/get", get_endpoint, methods=["POST"], response_model=dict,
            summary=f"Get {d.name} by ID",
        )
        router.add_api_route(
            "/list", list_endpoint, methods=["POST"], response_model=dict,
            summary=f"List {d.plural or d.name + 's'}",
        )
        router.add_api_route(
            "/update", update_endpoint, methods=["POST"], response_model=dict,
            summary=f"Update {d.name}",
        )
        router.add_api_route(
            "/delete", delete_endpoint, methods=["POST"], response_model=dict,
            summary=f"Delete {d.name}",
        )
        return router

    def generate(self) -> GeneratedModel:
        self.validate()
        schemas = self.generate_schemas()
        query_builder_spec = self.generate_query_builder_spec()
        generated = GeneratedModel(
            description=self.description,
            schemas=schemas,
            query_builder_spec=query_builder_spec,
            types=self.generate_types(),
            router=self.generate_router(schemas, query_builder_spec),
        )
        logger.debug("Generated CRUD bundle for %s", self.description.name)
        return generated


def generate_model(description: ModelDescription) -> GeneratedModel:
    return ModelBuilder(description).generate()
