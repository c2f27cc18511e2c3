"""Readers for JSON request bodies and query strings.

Body readers append ``{"name": ..., "reason": ...}`` entries to a shared
``errors`` list and return a fallback, so one request reports every bad
field at once; ``raise_for(errors)`` then turns the list into a 422.
Query readers raise ``BadRequestError`` straight away.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar

from flask import request
from sqlalchemy import Select
from werkzeug.datastructures import MultiDict

from .errors import BadRequestError, ValidationError

E = TypeVar("E", bound=enum.Enum)
FieldErrors = list[dict[str, str]]

_TRUE = frozenset({"true", "1", "yes"})
_FALSE = frozenset({"false", "0", "no"})


def json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError([{"name": "body", "reason": "json_object_required"}])
    return data


def raise_for(errors: FieldErrors) -> None:
    if errors:
        raise ValidationError(errors)


# --- JSON body fields ---
def int_field(data: Mapping[str, Any], name: str, errors: FieldErrors) -> int | None:
    raw = data.get(name)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        errors.append({"name": name, "reason": "not_an_integer"})
        return None
    return raw


def float_field(data: Mapping[str, Any], name: str, errors: FieldErrors, *, minimum: float | None = None) -> float | None:
    raw = data.get(name)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        errors.append({"name": name, "reason": "not_a_number"})
        return None
    if minimum is not None and raw < minimum:
        errors.append({"name": name, "reason": "too_small"})
        return None
    return float(raw)


def text_field(
    data: Mapping[str, Any],
    name: str,
    errors: FieldErrors,
    *,
    max_length: int,
    required: bool = False,
    label: str | None = None,
) -> str | None:
    """``label`` names the field in errors when it sits inside a nested object."""
    label = label or name
    raw = data.get(name)
    if raw is None or raw == "":
        if required:
            errors.append({"name": label, "reason": "required"})
        return None
    if not isinstance(raw, str):
        errors.append({"name": label, "reason": "not_a_string"})
        return None
    if len(raw) > max_length:
        errors.append({"name": label, "reason": "too_long"})
        return None
    return raw


def object_field(data: Mapping[str, Any], name: str, errors: FieldErrors) -> dict[str, Any]:
    raw = data.get(name)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        errors.append({"name": name, "reason": "not_an_object"})
        return {}
    return raw


def enum_field(enum_cls: type[E], raw: object, name: str, errors: FieldErrors, default: E) -> E:
    if raw is None:
        return default
    try:
        return enum_cls(str(raw))
    except ValueError:
        errors.append({"name": name, "reason": "invalid"})
        return default


# --- query string ---
def text_arg(args: Mapping[str, str], name: str) -> str | None:
    raw = args.get(name)
    if raw is None:
        return None
    if raw == "":
        raise BadRequestError(f"empty {name} parameter")
    return raw


def int_arg(args: Mapping[str, str], name: str, *, minimum: int | None = None) -> int | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError as e:
        raise BadRequestError(f"invalid {name} parameter") from e
    if minimum is not None and value < minimum:
        raise BadRequestError(f"{name} must be >= {minimum}")
    return value


def bool_arg(args: Mapping[str, str], name: str) -> bool | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise BadRequestError(f"invalid {name} parameter")


def enum_arg(enum_cls: type[E], args: Mapping[str, str], name: str) -> E | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return enum_cls(raw)
    except ValueError as e:
        raise BadRequestError(f"invalid {name} parameter") from e


def enum_args(enum_cls: type[E], args: MultiDict[str, str], name: str) -> set[E]:
    """All values of a repeatable parameter (``?diet=VEGAN&diet=PESCATARIAN``)."""
    try:
        return {enum_cls(v) for v in args.getlist(name) if v}
    except ValueError as e:
        raise BadRequestError(f"invalid {name} parameter") from e


def timestamp_arg(args: Mapping[str, str], name: str) -> datetime | None:
    """Epoch milliseconds as an aware UTC datetime."""
    millis = int_arg(args, name)
    if millis is None:
        return None
    return datetime.fromtimestamp(millis / 1000, UTC)


def filter_record_window(stmt: Select, model: Any, args: Mapping[str, str]) -> Select:
    """Apply ``min-created`` .. ``max-modified`` bounds to ``stmt``."""
    bounds = (
        ("min-created", model.created_at, True),
        ("max-created", model.created_at, False),
        ("min-modified", model.updated_at, True),
        ("max-modified", model.updated_at, False),
    )
    for name, column, lower in bounds:
        moment = timestamp_arg(args, name)
        if moment is not None:
            stmt = stmt.where(column >= moment if lower else column <= moment)
    return stmt


__all__ = [
    "FieldErrors",
    "json_body",
    "raise_for",
    "int_field",
    "float_field",
    "text_field",
    "object_field",
    "enum_field",
    "text_arg",
    "int_arg",
    "bool_arg",
    "enum_arg",
    "enum_args",
    "timestamp_arg",
    "filter_record_window",
]
