"""Domain error system + RFC7807 handler registration.

Handlers and services raise ``DomainError`` subclasses; the handlers
registered here turn them into problem+json responses. Nothing in the
body reveals which part of a credential or access key was wrong.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from http import HTTPStatus
from typing import Any

from flask import request
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from .http_errors import (
    bad_request,
    conflict,
    forbidden,
    internal_server_error,
    method_not_allowed,
    not_acceptable,
    not_found,
    problem,
    too_many_requests,
    unauthorized,
    unprocessable_entity,
    unsupported_media_type,
)
from .pagination import PaginationError

log = logging.getLogger(__name__)


class DomainError(Exception):
    status = 400
    code = "bad_request"

    def __init__(self, detail: str | None = None, *, status: int | None = None, code: str | None = None, **extra: Any):
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code
        self.detail = detail or self.code
        self.extra = extra
        super().__init__(self.detail)


class BadRequestError(DomainError):
    status = 400
    code = "bad_request"


class UnauthorizedError(DomainError):
    status = 401
    code = "unauthorized"


class ForbiddenError(DomainError):
    status = 403
    code = "forbidden"


class NotFoundError(DomainError):
    status = 404
    code = "not_found"


class NotAcceptableError(DomainError):
    status = 406
    code = "not_acceptable"


class ConflictError(DomainError):
    status = 409
    code = "conflict"


class UnsupportedMediaTypeError(DomainError):
    status = 415
    code = "unsupported_media_type"


class QuotaExceededError(DomainError):
    """Missing, unknown or exhausted access key; all three look the same to the caller."""

    status = 429
    code = "rate_limited"


class ValidationError(DomainError):
    status = 422
    code = "validation_error"

    def __init__(self, errors: Any, detail: str = "validation_error", **extra: Any):
        super().__init__(detail, **extra)
        self.errors = errors


_STATUS_HELPERS: dict[int, Callable[..., Response]] = {
    400: bad_request,
    401: unauthorized,
    403: forbidden,
    404: not_found,
    405: method_not_allowed,
    406: not_acceptable,
    409: conflict,
    415: unsupported_media_type,
    429: too_many_requests,
}


def problem_for(err: DomainError) -> Response:
    if isinstance(err, ValidationError):
        return unprocessable_entity(err.errors, detail=err.detail, **err.extra)
    helper = _STATUS_HELPERS.get(err.status, bad_request)
    return helper(detail=err.detail, **err.extra)


def register_error_handlers(app: Any) -> None:
    @app.errorhandler(DomainError)
    def _h_domain(err: DomainError) -> Response:
        return problem_for(err)

    @app.errorhandler(PaginationError)
    def _h_pagination(err: PaginationError) -> Response:
        return bad_request(detail=str(err) or "bad_request")

    @app.errorhandler(HTTPException)
    def _h_http(ex: HTTPException) -> Response:
        status = ex.code or 500
        if status == 405:
            allow = getattr(ex, "valid_methods", None)
            return method_not_allowed(detail=ex.description, allow=sorted(allow) if allow else None)
        helper = _STATUS_HELPERS.get(status)
        if helper:
            return helper(detail=ex.description)
        if status >= 500:
            return internal_server_error()
        # Other 4xx keep their own status
        slug = HTTPStatus(status).phrase.lower().replace(" ", "_").replace("-", "_")
        return problem(status, slug, str(ex.description))

    @app.errorhandler(Exception)
    def _h_exception(ex: Exception) -> Response:
        incident_id = str(uuid.uuid4())
        log.exception("Unhandled exception incident_id=%s path=%s", incident_id, request.path)
        return internal_server_error(incident_id=incident_id)


__all__ = [
    "DomainError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "NotAcceptableError",
    "ConflictError",
    "UnsupportedMediaTypeError",
    "QuotaExceededError",
    "ValidationError",
    "problem_for",
    "register_error_handlers",
]
