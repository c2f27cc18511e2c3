"""Security middleware: CORS allow-list and response security headers.

Credentials travel as HTTP Basic on every call, so there is no cookie
session and no CSRF token; browsers are kept in check by the CORS
allow-list alone.
"""

from __future__ import annotations

from flask import Flask, make_response, request

ALLOWED_METHODS = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
# The gate strips these before handlers run, but browsers must be allowed to send them
ALLOWED_HEADERS = "Authorization,Content-Type,X-Access-Key,X-Content-Description,X-Set-Password,X-Request-Id"
EXPOSED_HEADERS = "ETag,X-Request-Id"


def _validate_cors(app: Flask, resp):
    allowed: list[str] = app.config.get("CORS_ALLOWED_ORIGINS", []) or []
    if not allowed:
        return resp  # CORS disabled
    origin = request.headers.get("Origin")
    if not origin:
        return resp
    if origin in allowed or "*" in allowed:
        resp.headers.setdefault("Vary", "Origin")
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        resp.headers["Access-Control-Allow-Headers"] = request.headers.get(
            "Access-Control-Request-Headers", ALLOWED_HEADERS
        )
        resp.headers["Access-Control-Expose-Headers"] = EXPOSED_HEADERS
        resp.headers["Access-Control-Allow-Credentials"] = "true"
        resp.headers["Access-Control-Max-Age"] = "600"
    return resp


def init_security(app: Flask) -> Flask:
    @app.after_request
    def _security_after_request(resp):  # pragma: no cover - coverage via tests
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if not app.config.get("TESTING") and not app.config.get("DEBUG"):
            resp.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")
        resp.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        # Apply CORS last
        return _validate_cors(app, resp)

    # Preflights pass the gate untouched and are answered here
    @app.route("/", methods=["OPTIONS"], defaults={"path": ""})
    @app.route("/<path:path>", methods=["OPTIONS"])
    def _cors_preflight(path=""):  # pragma: no cover - simple
        return make_response("", 204)

    return app


__all__ = ["init_security"]
