"""RFC7807 problem+json builders shared by the gate, handlers and error hooks.

Bodies carry ``type``, ``title``, ``status``, ``detail``, the request path
as ``instance`` and the request id; callers add extra members as keywords
(``None`` values are dropped).
"""
from __future__ import annotations

import uuid
from http import HTTPStatus

from flask import g, has_request_context, jsonify, request
from werkzeug.wrappers.response import Response

PROBLEM_TYPE_PREFIX = "urn:dinner-planner:problem:"
PROBLEM_MIMETYPE = "application/problem+json"


def problem(status: int, slug: str, detail: str | None = None, *, title: str | None = None, **extra: object) -> Response:
    payload: dict[str, object] = {
        "type": PROBLEM_TYPE_PREFIX + slug,
        "title": title or HTTPStatus(status).phrase,
        "status": status,
        "detail": detail if detail is not None else slug,
    }
    rid = None
    if has_request_context():
        payload["instance"] = request.path
        rid = getattr(g, "request_id", None)
        if rid:
            payload["request_id"] = rid
    payload.update({k: v for k, v in extra.items() if v is not None})
    resp = jsonify(payload)
    resp.status_code = status
    resp.mimetype = PROBLEM_MIMETYPE
    if rid:
        resp.headers.setdefault("X-Request-Id", rid)
    return resp


def bad_request(detail: str = "bad_request", **extra: object) -> Response:
    return problem(400, "bad_request", detail, **extra)


def unauthorized(detail: str = "unauthorized", www_auth: str | None = "Basic", **extra: object) -> Response:
    resp = problem(401, "unauthorized", detail, **extra)
    if www_auth:
        resp.headers["WWW-Authenticate"] = www_auth
    return resp


def forbidden(detail: str = "forbidden", **extra: object) -> Response:
    return problem(403, "forbidden", detail, **extra)


def not_found(detail: str = "not_found", **extra: object) -> Response:
    return problem(404, "not_found", detail, **extra)


def not_acceptable(detail: str = "not_acceptable", **extra: object) -> Response:
    return problem(406, "not_acceptable", detail, **extra)


def method_not_allowed(detail: str = "method_not_allowed", allow: list[str] | None = None, **extra: object) -> Response:
    resp = problem(405, "method_not_allowed", detail, **extra)
    if allow:
        resp.headers["Allow"] = ", ".join(allow)
    return resp


def conflict(detail: str = "conflict", **extra: object) -> Response:
    return problem(409, "conflict", detail, **extra)


def unsupported_media_type(detail: str = "unsupported_media_type", **extra: object) -> Response:
    return problem(415, "unsupported_media_type", detail, **extra)


def unprocessable_entity(errors: object, detail: str = "validation_error", **extra: object) -> Response:
    return problem(422, "validation_error", detail, errors=errors, **extra)


def too_many_requests(detail: str = "rate_limited", **extra: object) -> Response:
    # Same body for missing, unknown and exhausted keys
    return problem(429, "rate_limited", detail, **extra)


def internal_server_error(detail: str = "internal_error", incident_id: str | None = None, **extra: object) -> Response:
    return problem(500, "internal_error", detail, incident_id=incident_id or str(uuid.uuid4()), **extra)


__all__ = [
    "PROBLEM_MIMETYPE",
    "problem",
    "bad_request",
    "unauthorized",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "not_acceptable",
    "conflict",
    "unsupported_media_type",
    "unprocessable_entity",
    "too_many_requests",
    "internal_server_error",
]
