"""Storage collections: the engine's only contact with the database.

``SQLAlchemyCollection`` binds one mapped model and interprets storage
conditions (nested dicts produced by ``services.operators``) into SQLAlchemy
expressions. Every key is checked against the mapper, and values are bound
as parameters, so request data never reaches the SQL text.
"""

import enum
import logging
import uuid
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

import sqlalchemy as sa
from sqlalchemy import and_, func, not_, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from menuadmin.core.exceptions import FilterValidationError

logger = logging.getLogger(__name__)

_QUANTIFIERS = {"some", "every", "none"}
_COMBINATORS = {"AND", "OR", "NOT"}


class Collection(Protocol):
    """Storage operations the query engine and CRUD handlers rely on."""

    async def find_many(
        self,
        *,
        where: dict | None = None,
        order_by: dict[str, str] | None = None,
        take: int | None = None,
        skip: int | None = None,
        include: dict | None = None,
        select: dict | None = None,
    ) -> list[dict]: ...

    async def count(self, *, where: dict | None = None) -> int: ...

    async def find_first(
        self, *, where: dict, include: dict | None = None
    ) -> dict | None: ...

    async def create(self, *, data: dict, include: dict | None = None) -> dict: ...

    async def update(
        self, *, where: dict, data: dict, include: dict | None = None
    ) -> dict: ...

    async def delete(self, *, where: dict) -> int: ...


# ── Value coercion ───────────────────────────────────────────────────


def _escape_like(value: str) -> str:
    """Escape LIKE metacharacters to prevent wildcard injection."""
    return (
        value
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


def _bad_value(column_key: str, kind: str) -> FilterValidationError:
    return FilterValidationError(f'Invalid value for field "{column_key}" ({kind})')


def _column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except (AttributeError, IndexError, NotImplementedError):
        return None


def _coerce_bool(column_key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes"}:
        return True
    if text in {"0", "false", "no"}:
        return False
    raise _bad_value(column_key, "boolean")


def _coerce_number(column_key: str, value, python_type):
    if isinstance(value, bool):
        raise _bad_value(column_key, "number")
    if isinstance(value, (int, float, Decimal)):
        return python_type(value) if python_type is not Decimal else Decimal(str(value))
    text = str(value).strip().replace(",", ".")
    try:
        return python_type(text)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_value(column_key, "number")


def _coerce_datetime(column_key: str, value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    text = str(value).strip()
    try:
        if "T" not in text and " " not in text and len(text) == 10:
            # Date-only value for a timestamp column -> start of the day.
            return datetime.combine(date.fromisoformat(text), datetime.min.time())
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise _bad_value(column_key, "datetime")


def _coerce_date(column_key: str, value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise _bad_value(column_key, "date")


def coerce_value(column, value):
    """Convert a JSON-ish filter value to the column's Python type."""
    if value is None:
        return None
    python_type = _column_python_type(column)
    if python_type is None:
        return value
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value).strip())
        except ValueError:
            raise _bad_value(column.key, "uuid")
    if python_type is bool:
        return _coerce_bool(column.key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number(column.key, value, python_type)
    if python_type is datetime:
        return _coerce_datetime(column.key, value)
    if python_type is date:
        return _coerce_date(column.key, value)
    if isinstance(python_type, type) and issubclass(python_type, enum.Enum):
        if isinstance(value, python_type):
            return value
        try:
            return python_type(value)
        except ValueError:
            try:
                return python_type[str(value)]
            except KeyError:
                raise _bad_value(column.key, "enum")
    return value


# ── Condition interpretation ─────────────────────────────────────────


def _like_pattern(kind: str, value: str) -> str:
    safe = _escape_like(value)
    if kind == "starts_with":
        return f"{safe}%"
    if kind == "ends_with":
        return f"%{safe}"
    return f"%{safe}%"


def _column_clause(column, condition):
    if condition is None:
        return column.is_(None)
    if not isinstance(condition, Mapping):
        return column == coerce_value(column, condition)

    insensitive = condition.get("mode") == "insensitive"
    parts = []
    for key, value in condition.items():
        if key == "mode":
            continue
        if key == "equals":
            parts.append(
                column.is_(None) if value is None else column == coerce_value(column, value)
            )
        elif key == "not":
            if value is None:
                parts.append(column.isnot(None))
            elif isinstance(value, Mapping):
                parts.append(not_(_column_clause(column, value)))
            else:
                parts.append(column != coerce_value(column, value))
        elif key == "gt":
            parts.append(column > coerce_value(column, value))
        elif key == "gte":
            parts.append(column >= coerce_value(column, value))
        elif key == "lt":
            parts.append(column < coerce_value(column, value))
        elif key == "lte":
            parts.append(column <= coerce_value(column, value))
        elif key == "in":
            parts.append(column.in_([coerce_value(column, v) for v in value]))
        elif key == "not_in":
            parts.append(column.not_in([coerce_value(column, v) for v in value]))
        elif key in ("contains", "starts_with", "ends_with"):
            pattern = _like_pattern(key, str(value))
            if insensitive:
                parts.append(column.ilike(pattern, escape="\\"))
            else:
                parts.append(column.like(pattern, escape="\\"))
        elif key == "regex":
            parts.append(column.regexp_match(str(value), flags="i" if insensitive else None))
        elif key == "search":
            parts.append(column.match(str(value)))
        else:
            raise FilterValidationError(f"Unsupported condition: {key}")
    if not parts:
        return sa.true()
    return and_(*parts)


def _relation_clause(model, name: str, condition):
    rel = sa.inspect(model).relationships[name]
    attr = getattr(model, name)
    target = rel.mapper.class_

    def exists(clause):
        return attr.any(clause) if rel.uselist else attr.has(clause)

    if condition is None:
        return not_(exists(sa.true()))
    if not isinstance(condition, Mapping):
        raise FilterValidationError(f'Relation "{name}" requires an object condition')

    if not (condition.keys() & _QUANTIFIERS):
        return exists(build_clause(target, condition))

    parts = []
    for quantifier, sub in condition.items():
        if quantifier not in _QUANTIFIERS:
            raise FilterValidationError(
                f'Cannot mix "{quantifier}" with relation quantifiers on "{name}"'
            )
        clause = build_clause(target, sub or {})
        if quantifier == "some":
            parts.append(exists(clause))
        elif quantifier == "none":
            parts.append(not_(exists(clause)))
        else:
            parts.append(not_(exists(not_(clause))))
    return and_(*parts)


def _check_visible(model, key: str) -> None:
    if key in getattr(model, "__hidden_columns__", ()):
        raise FilterValidationError(f"Field cannot be used in queries: {key}")


def _as_list(value) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def build_clause(model, where: Mapping | None):
    """Build a SQLAlchemy boolean clause from a storage condition."""
    if not where:
        return sa.true()
    mapper = sa.inspect(model)
    clauses = []
    for key, value in where.items():
        if key == "AND":
            parts = [build_clause(model, w) for w in _as_list(value)]
            clauses.append(and_(*parts) if parts else sa.true())
        elif key == "OR":
            parts = [build_clause(model, w) for w in _as_list(value)]
            clauses.append(or_(*parts) if parts else sa.false())
        elif key == "NOT":
            parts = [build_clause(model, w) for w in _as_list(value)]
            clauses.append(not_(and_(*parts)) if parts else sa.true())
        elif key in mapper.relationships:
            clauses.append(_relation_clause(model, key, value))
        elif key in mapper.column_attrs:
            _check_visible(model, key)
            clauses.append(_column_clause(getattr(model, key), value))
        else:
            raise FilterValidationError(f"Unknown field: {key}")
    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)


def build_order_by(model, order_by: Mapping[str, str] | None) -> list:
    mapper = sa.inspect(model)
    clauses = []
    for key, direction in (order_by or {}).items():
        if key not in mapper.column_attrs:
            raise FilterValidationError(f"Invalid sort field: {key}")
        _check_visible(model, key)
        column = getattr(model, key)
        if direction == "asc":
            clauses.append(column.asc())
        elif direction == "desc":
            clauses.append(column.desc())
        else:
            raise FilterValidationError(f"Invalid sort direction: {direction}")
    return clauses


# ── Relation loading and serialization ───────────────────────────────


def _nested_spec(spec) -> dict:
    if not isinstance(spec, Mapping):
        return {}
    nested: dict = {}
    nested.update(spec.get("include") or {})
    nested.update(spec.get("select") or {})
    return nested


def loader_options(model, spec: Mapping | None) -> list:
    """selectinload options for every relation named in an include/select map."""
    mapper = sa.inspect(model)
    options = []
    for name, value in (spec or {}).items():
        if name in mapper.column_attrs:
            continue
        if name not in mapper.relationships:
            raise FilterValidationError(f"Unknown relation: {name}")
        if not value:
            continue
        target = mapper.relationships[name].mapper.class_
        attr = getattr(model, name)
        if isinstance(value, Mapping) and value.get("where"):
            attr = attr.and_(build_clause(target, value["where"]))
        loader = selectinload(attr)
        nested = loader_options(target, _nested_spec(value))
        if nested:
            loader = loader.options(*nested)
        options.append(loader)
    return options


def serialize(obj, include: Mapping | None = None, select: Mapping | None = None) -> dict:
    """Convert a loaded entity into a dict following include/select."""
    mapper = sa.inspect(obj).mapper
    row: dict[str, Any] = {}
    for attr in mapper.column_attrs:
        if select is None or select.get(attr.key):
            row[attr.key] = getattr(obj, attr.key)

    relations = include if include is not None else (select or {})
    for name, spec in relations.items():
        if name not in mapper.relationships or not spec:
            continue
        nested_include = spec.get("include") if isinstance(spec, Mapping) else None
        nested_select = spec.get("select") if isinstance(spec, Mapping) else None
        related = getattr(obj, name)
        if related is None:
            row[name] = None
        elif isinstance(related, list):
            row[name] = [serialize(r, nested_include, nested_select) for r in related]
        else:
            row[name] = serialize(related, nested_include, nested_select)
    return row


# ── SQLAlchemy collection ────────────────────────────────────────────


class SQLAlchemyCollection:
    """A ``Collection`` over one mapped model.

    Each call opens its own session from the factory, so ``find_many`` and
    ``count`` can run concurrently.
    """

    def __init__(self, model, session_factory: async_sessionmaker[AsyncSession]):
        self.model = model
        self.session_factory = session_factory

    def __repr__(self) -> str:
        return f"SQLAlchemyCollection({self.model.__name__})"

    def _check_data(self, data: Mapping) -> dict:
        mapper = sa.inspect(self.model)
        clean = {}
        for key, value in data.items():
            if key not in mapper.column_attrs:
                raise FilterValidationError(f"Unknown field: {key}")
            clean[key] = coerce_value(getattr(self.model, key), value)
        return clean

    async def find_many(
        self,
        *,
        where: dict | None = None,
        order_by: dict[str, str] | None = None,
        take: int | None = None,
        skip: int | None = None,
        include: dict | None = None,
        select: dict | None = None,
    ) -> list[dict]:
        stmt = sa.select(self.model).where(build_clause(self.model, where))
        stmt = stmt.order_by(*build_order_by(self.model, order_by))
        if skip:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)
        options = loader_options(self.model, include if include is not None else select)
        if options:
            stmt = stmt.options(*options)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
            return [serialize(r, include, select) for r in rows]

    async def count(self, *, where: dict | None = None) -> int:
        stmt = (
            sa.select(func.count())
            .select_from(self.model)
            .where(build_clause(self.model, where))
        )
        async with self.session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def find_first(self, *, where: dict, include: dict | None = None) -> dict | None:
        rows = await self.find_many(where=where, take=1, include=include)
        return rows[0] if rows else None

    async def create(self, *, data: dict, include: dict | None = None) -> dict:
        obj = self.model(**self._check_data(data))
        async with self.session_factory() as session:
            async with session.begin():
                session.add(obj)
            new_id = obj.id
        created = await self.find_first(where={"id": new_id}, include=include)
        if created is None:
            raise RuntimeError(f"{self.model.__name__} {new_id} vanished after insert")
        return created

    async def update(self, *, where: dict, data: dict, include: dict | None = None) -> dict:
        values = self._check_data(data)
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    sa.select(self.model).where(build_clause(self.model, where)).limit(1)
                )
                obj = result.scalar_one()
                for key, value in values.items():
                    setattr(obj, key, value)
            obj_id = obj.id
        updated = await self.find_first(where={"id": obj_id}, include=include)
        if updated is None:
            raise RuntimeError(f"{self.model.__name__} {obj_id} vanished after update")
        return updated

    async def delete(self, *, where: dict) -> int:
        stmt = sa.delete(self.model).where(build_clause(self.model, where))
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount


class CollectionFactory:
    """Creates collections bound to one session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    def for_model(self, model) -> SQLAlchemyCollection:
        return SQLAlchemyCollection(model, self.session_factory)
