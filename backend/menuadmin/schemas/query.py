"""Filter specifications, list requests and the paginated envelope.

A filter specification is a tagged union keyed by ``operation``; each
variant constrains the shape of ``value`` (scalar, list, ordered pair,
nested condition, or nothing at all).
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, Literal, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from menuadmin.core.exceptions import FilterValidationError

T = TypeVar("T")

IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"
RELATION_PATH_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$"

BETWEEN_ERROR = "Between operation requires array with exactly 2 values"
SCALAR_ERROR = "Filter value must be a string, number, boolean, date or null"


class FilterOperation(str, enum.Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "notIn"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IS_NULL = "isNull"
    IS_NOT_NULL = "isNotNull"
    BETWEEN = "between"
    REGEX = "regex"
    SEARCH = "search"
    HAS = "has"
    HAS_NOT = "hasNot"
    SOME = "some"
    EVERY = "every"
    NONE = "none"


class SortDirection(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


def _scalar(v: Any) -> Any:
    if isinstance(v, (list, tuple, set, frozenset, dict)):
        raise ValueError(SCALAR_ERROR)
    return v


class _FilterBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    field: str = Field(min_length=1, max_length=100, pattern=IDENTIFIER_PATTERN)
    relation: str | None = Field(None, max_length=200, pattern=RELATION_PATH_PATTERN)
    case_sensitive: bool = False

    @property
    def op(self) -> FilterOperation:
        return FilterOperation(self.operation)  # type: ignore[attr-defined]


class ComparisonFilter(_FilterBase):
    operation: Literal["eq", "ne", "gt", "gte", "lt", "lte"]
    value: Any = None

    @field_validator("value", mode="before")
    @classmethod
    def require_scalar(cls, v: Any) -> Any:
        return _scalar(v)


class MembershipFilter(_FilterBase):
    operation: Literal["in", "notIn"]
    value: tuple[Any, ...]

    @field_validator("value", mode="before")
    @classmethod
    def wrap_scalar(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return tuple(_scalar(item) for item in v)
        return (_scalar(v),)


class TextFilter(_FilterBase):
    operation: Literal[
        "contains", "notContains", "startsWith", "endsWith", "regex", "search",
    ]
    value: str = Field(max_length=500)

    @field_validator("value", mode="before")
    @classmethod
    def stringify_numbers(cls, v: Any) -> Any:
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v


class NullFilter(_FilterBase):
    operation: Literal["isNull", "isNotNull"]
    value: Any = None


class RangeFilter(_FilterBase):
    operation: Literal["between"]
    value: tuple[Any, Any]

    @field_validator("value", mode="before")
    @classmethod
    def require_ordered_pair(cls, v: Any) -> Any:
        if not isinstance(v, (list, tuple)) or len(v) != 2:
            raise ValueError(BETWEEN_ERROR)
        low, high = _scalar(v[0]), _scalar(v[1])
        if _comparable(low, high) and low > high:
            raise ValueError("Between operation requires the lower bound first")
        return (low, high)


class RelationFilter(_FilterBase):
    operation: Literal["has", "hasNot", "some", "every", "none"]
    value: list["FilterSpec"] | dict[str, Any] = Field(default_factory=dict)


FilterSpec = Annotated[
    Union[
        ComparisonFilter,
        MembershipFilter,
        TextFilter,
        NullFilter,
        RangeFilter,
        RelationFilter,
    ],
    Field(discriminator="operation"),
]

RelationFilter.model_rebuild()

_filter_adapter: TypeAdapter = TypeAdapter(FilterSpec)

_NUMBER_TYPES = (int, float, Decimal)


def _comparable(low: Any, high: Any) -> bool:
    """True when ``low > high`` is well defined for the pair."""
    if isinstance(low, bool) or isinstance(high, bool):
        return False
    if isinstance(low, _NUMBER_TYPES) and isinstance(high, _NUMBER_TYPES):
        return True
    if isinstance(low, datetime) and isinstance(high, datetime):
        return (low.tzinfo is None) == (high.tzinfo is None)
    if isinstance(low, datetime) or isinstance(high, datetime):
        return False
    return isinstance(low, date) and isinstance(high, date)


def _error_message(exc: ValidationError) -> str:
    err = exc.errors()[0]
    message = err.get("msg", "Invalid filter")
    message = message.removeprefix("Value error, ")
    loc = ".".join(str(part) for part in err.get("loc", ()) if not isinstance(part, int))
    if loc and message != BETWEEN_ERROR:
        return f"{loc}: {message}"
    return message


def parse_filter(raw: Any) -> "FilterSpec":
    """Validate a raw mapping into a filter specification.

    Raises FilterValidationError for an unknown operation or a value of
    the wrong shape.
    """
    if isinstance(raw, _FilterBase):
        return raw
    if not isinstance(raw, dict):
        raise FilterValidationError("Filter must be an object")
    operation = raw.get("operation")
    if operation not in {op.value for op in FilterOperation}:
        raise FilterValidationError(f"Unsupported operation: {operation}")
    try:
        return _filter_adapter.validate_python(raw)
    except ValidationError as exc:
        raise FilterValidationError(_error_message(exc)) from exc


def parse_filters(raw: list[Any]) -> list["FilterSpec"]:
    return [parse_filter(item) for item in raw]


# ── Requests and responses ───────────────────────────────────────────


class ListRequest(BaseModel):
    """Base list request; model-specific requests add optional filters."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)
    search: str | None = Field(None, max_length=200)
    advanced_search: list[FilterSpec] | None = None
    order_by: dict[str, SortDirection] | None = None

    @field_validator("order_by")
    @classmethod
    def validate_order_fields(
        cls, v: dict[str, SortDirection] | None
    ) -> dict[str, SortDirection] | None:
        if v is None:
            return v
        for key in v:
            if not key.isidentifier():
                raise ValueError(f"Invalid sort field: {key}")
        return v

    def order_by_map(self) -> dict[str, str] | None:
        if not self.order_by:
            return None
        return {k: d.value for k, d in self.order_by.items()}


class PaginatedResult(BaseModel, Generic[T]):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    data: list[T]
    total_count: int
    has_more: bool
    current_page: int
    total_pages: int

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
