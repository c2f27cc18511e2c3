from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from sqlalchemy import Select
from typing_extensions import TypedDict

T = TypeVar("T")

__all__ = [
    "PageRequest",
    "parse_page_params",
    "apply_page",
    "page_select",
    "PaginationError",
]


class PageRequest(TypedDict):
    offset: int
    limit: int | None


class PaginationError(ValueError):
    """Raised when paging query params are invalid."""


MAX_LIMIT = 1000


def _parse_int(raw: str | None, name: str) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise PaginationError(f"invalid {name} parameter") from e


def parse_page_params(args: dict[str, str | None]) -> PageRequest:
    """Parse ``paging-offset`` / ``paging-limit`` from a dict-like (e.g. request.args).

    Offset must be >= 0 and limit >= 1; the limit is capped to MAX_LIMIT.
    """
    offset = _parse_int(args.get("paging-offset"), "paging-offset")
    limit = _parse_int(args.get("paging-limit"), "paging-limit")
    if offset is not None and offset < 0:
        raise PaginationError("paging-offset must be >= 0")
    if limit is not None:
        if limit < 1:
            raise PaginationError("paging-limit must be >= 1")
        limit = min(limit, MAX_LIMIT)
    return PageRequest(offset=offset or 0, limit=limit)


def apply_page(seq: Sequence[T], page_req: PageRequest) -> list[T]:
    start = page_req["offset"]
    if page_req["limit"] is None:
        return list(seq[start:])
    return list(seq[start : start + page_req["limit"]])


def page_select(stmt: Select, page_req: PageRequest) -> Select:
    """SQL-side counterpart of ``apply_page`` for ``select()`` statements."""
    stmt = stmt.offset(page_req["offset"])
    if page_req["limit"] is not None:
        stmt = stmt.limit(page_req["limit"])
    return stmt
