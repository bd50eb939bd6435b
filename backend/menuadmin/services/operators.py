"""Compile filter specifications into storage conditions.

A storage condition is a plain nested ``dict``: ``{field: condition}``,
optionally wrapped under relation names, with ``AND``/``OR``/``NOT`` as
combinators. ``services.collection`` turns it into SQL.
"""

from typing import Any

from menuadmin.core.exceptions import FilterValidationError
from menuadmin.schemas.query import (
    BETWEEN_ERROR,
    FilterOperation,
    FilterSpec,
    parse_filter,
)

INSENSITIVE = "insensitive"

_COMPARISON_KEYS = {
    FilterOperation.GT: "gt",
    FilterOperation.GTE: "gte",
    FilterOperation.LT: "lt",
    FilterOperation.LTE: "lte",
}

_TEXT_KEYS = {
    FilterOperation.CONTAINS: "contains",
    FilterOperation.STARTS_WITH: "starts_with",
    FilterOperation.ENDS_WITH: "ends_with",
    FilterOperation.REGEX: "regex",
    FilterOperation.SEARCH: "search",
}

_QUANTIFIER_KEYS = {
    FilterOperation.HAS: "some",
    FilterOperation.SOME: "some",
    FilterOperation.HAS_NOT: "none",
    FilterOperation.NONE: "none",
    FilterOperation.EVERY: "every",
}


def _text_condition(key: str, value: Any, case_sensitive: bool) -> dict:
    condition = {key: value}
    if not case_sensitive:
        condition["mode"] = INSENSITIVE
    return condition


def _nested_where(value: Any) -> dict:
    """Related-entity condition for has/some/every/none."""
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, (list, tuple)):
        compiled = [compile_filter(parse_filter(item)) for item in value]
        if not compiled:
            return {}
        if len(compiled) == 1:
            return compiled[0]
        return {"AND": compiled}
    raise FilterValidationError("Relation filters require an object or a list of filters")


def build_condition(operation: FilterOperation | str, value: Any, case_sensitive: bool = False) -> Any:
    """Condition for one field, before it is attached to the field name."""
    try:
        op = FilterOperation(operation)
    except ValueError:
        raise FilterValidationError(f"Unsupported operation: {operation}")

    if op is FilterOperation.EQ:
        return {"equals": value}
    if op is FilterOperation.NE:
        return {"not": value}
    if op in _COMPARISON_KEYS:
        return {_COMPARISON_KEYS[op]: value}
    if op in (FilterOperation.IN, FilterOperation.NOT_IN):
        values = list(value) if isinstance(value, (list, tuple, set, frozenset)) else [value]
        return {"in" if op is FilterOperation.IN else "not_in": values}
    if op in _TEXT_KEYS:
        return _text_condition(_TEXT_KEYS[op], value, case_sensitive)
    if op is FilterOperation.NOT_CONTAINS:
        return {"not": _text_condition("contains", value, case_sensitive)}
    if op is FilterOperation.IS_NULL:
        return None
    if op is FilterOperation.IS_NOT_NULL:
        return {"not": None}
    if op is FilterOperation.BETWEEN:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise FilterValidationError(BETWEEN_ERROR)
        return {"gte": value[0], "lte": value[1]}
    if op in _QUANTIFIER_KEYS:
        return {_QUANTIFIER_KEYS[op]: _nested_where(value)}
    raise FilterValidationError(f"Unsupported operation: {operation}")


def compile_filter(spec: FilterSpec) -> dict:
    """Translate one filter specification into a storage condition.

    With ``relation="store.user"`` the field condition is nested as
    ``{"store": {"user": {field: condition}}}``.
    """
    condition: dict = {
        spec.field: build_condition(spec.operation, spec.value, spec.case_sensitive)
    }
    if spec.relation:
        for name in reversed(spec.relation.split(".")):
            condition = {name: condition}
    return condition


def compile_filters(specs: list[FilterSpec]) -> list[dict]:
    return [compile_filter(spec) for spec in specs]
