"""Service discovery: a minimal OpenAPI document built from the URL map."""

from __future__ import annotations

import re
from typing import Any

from flask import Flask, current_app, jsonify

_CONVERTER_RE = re.compile(r"<(?:[^:<>]+:)?([^<>]+)>")
_HIDDEN_METHODS = {"HEAD", "OPTIONS"}
_HIDDEN_ENDPOINTS = {"static", "_cors_preflight"}


def _openapi_path(rule: str) -> str:
    return _CONVERTER_RE.sub(r"{\1}", rule)


def build_spec(app: Flask) -> dict[str, Any]:
    paths: dict[str, dict[str, Any]] = {}
    for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
        if rule.endpoint in _HIDDEN_ENDPOINTS:
            continue
        methods = sorted((rule.methods or set()) - _HIDDEN_METHODS)
        if not methods:
            continue
        entry = paths.setdefault(_openapi_path(rule.rule), {})
        for method in methods:
            entry[method.lower()] = {"operationId": rule.endpoint}
    return {
        "openapi": "3.0.3",
        "info": {"title": "Dinner Planner API", "version": app.config.get("API_VERSION", "1.0.0")},
        "paths": paths,
    }


def openapi_spec():
    return jsonify(build_spec(current_app))


def init_discovery(app: Flask, path: str = "/openapi.json") -> None:
    app.add_url_rule(path, "openapi_spec", openapi_spec, methods=["GET"])


__all__ = ["build_spec", "init_discovery"]
