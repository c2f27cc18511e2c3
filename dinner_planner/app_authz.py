"""Authorization helpers built on the gate's ``X-Requester-Identity`` header.

Handlers decorated with ``require_requester`` get the authenticated
``Person`` on ``g.requester``; a missing header or a person that no longer
exists is a 403, matching the behaviour of the resource endpoints.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from flask import g, request

from .db import get_session
from .errors import ForbiddenError
from .gate import HEADER_REQUESTER_IDENTITY
from .models import Group, Person

P = ParamSpec("P")
R = TypeVar("R")


def requester_id() -> int | None:
    raw = request.headers.get(HEADER_REQUESTER_IDENTITY)
    if raw is None or not raw.isdigit():
        return None
    return int(raw)


def require_requester(fn: Callable[P, R]) -> Callable[P, R]:
    @wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        rid = requester_id()
        if rid is None:
            raise ForbiddenError("requester_required")
        person = get_session().get(Person, rid)
        if person is None:
            raise ForbiddenError("requester_unknown")
        g.requester = person
        return fn(*args, **kwargs)

    return wrapper


def is_admin(person: Person) -> bool:
    return person.group == Group.ADMIN


def enforce_self_or_admin(requester: Person, person_id: int) -> None:
    if requester.id != person_id and not is_admin(requester):
        raise ForbiddenError()


def enforce_author_or_admin(requester: Person, author_id: int | None) -> None:
    if requester.id != author_id and not is_admin(requester):
        raise ForbiddenError("author_or_admin_required")


__all__ = ["requester_id", "require_requester", "is_admin", "enforce_self_or_admin", "enforce_author_or_admin"]
