"""Victuals API: the food items recipes are made of."""

from __future__ import annotations

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .app_authz import enforce_author_or_admin, require_requester
from .concurrency import check_version
from .db import get_session
from .documents_api import resolve_document
from .errors import ConflictError, NotFoundError
from .models import Diet, Ingredient, Victual
from .pagination import page_select, parse_page_params
from .validation import (
    bool_arg,
    enum_args,
    enum_field,
    filter_record_window,
    int_field,
    json_body,
    raise_for,
    text_arg,
    text_field,
)

bp = Blueprint("victuals_api", __name__, url_prefix="/victuals")


def serialize_victual(v: Victual) -> dict:
    return {
        "id": v.id,
        "version": v.version,
        "created": v.created_at.isoformat() if v.created_at else None,
        "modified": v.updated_at.isoformat() if v.updated_at else None,
        "alias": v.alias,
        "description": v.description,
        "diet": v.diet.value,
        "avatar-reference": v.avatar_id,
        "author-reference": v.author_id,
    }


def _victual(db: Session, victual_id: int) -> Victual:
    victual = db.get(Victual, victual_id)
    if victual is None:
        raise NotFoundError("victual_not_found")
    return victual


@bp.get("")
def query_victuals():
    args = request.args
    page = parse_page_params(dict(args))
    stmt = filter_record_window(select(Victual), Victual, args)
    alias = text_arg(args, "alias")
    if alias is not None:
        stmt = stmt.where(Victual.alias == alias)
    fragment = text_arg(args, "description-fragment")
    if fragment is not None:
        stmt = stmt.where(Victual.description.contains(fragment, autoescape=True))
    authored = bool_arg(args, "authored")
    if authored is not None:
        stmt = stmt.where(Victual.author_id.is_not(None) if authored else Victual.author_id.is_(None))
    diets = enum_args(Diet, args, "diet")
    if diets:
        stmt = stmt.where(Victual.diet.in_(diets))
    stmt = page_select(stmt.order_by(Victual.alias, Victual.id), page)
    return jsonify([serialize_victual(v) for v in get_session().execute(stmt).scalars()])


@bp.get("/<int:victual_id>")
def find_victual(victual_id: int):
    return jsonify(serialize_victual(_victual(get_session(), victual_id)))


@bp.get("/<int:victual_id>/author")
def find_victual_author(victual_id: int):
    from .people_api import serialize_person

    victual = _victual(get_session(), victual_id)
    if victual.author is None:
        raise NotFoundError("author_not_found")
    return jsonify(serialize_person(victual.author))


@bp.post("")
@require_requester
def insert_or_update_victual():
    data = json_body()
    errors: list[dict[str, str]] = []
    victual_id = int_field(data, "id", errors) or 0
    version = int_field(data, "version", errors)
    alias = text_field(data, "alias", errors, max_length=128, required=True)
    description = text_field(data, "description", errors, max_length=4094)
    diet = enum_field(Diet, data.get("diet"), "diet", errors, Diet.VEGAN)
    raise_for(errors)

    db = get_session()
    avatar_id = resolve_document(db, data.get("avatar-reference"))
    if not victual_id:
        victual = Victual(author_id=g.requester.id)
        db.add(victual)
    else:
        victual = _victual(db, victual_id)
        enforce_author_or_admin(g.requester, victual.author_id)
        check_version(victual.version, version, resource="victual")
    victual.alias = alias
    victual.description = description
    victual.diet = diet
    if avatar_id is not None:
        victual.avatar_id = avatar_id
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        raise ConflictError("victual_conflict") from e
    return Response(str(victual.id), status=201 if not victual_id else 200, mimetype="text/plain")


@bp.delete("/<int:victual_id>")
@require_requester
def delete_victual(victual_id: int):
    db = get_session()
    victual = _victual(db, victual_id)
    enforce_author_or_admin(g.requester, victual.author_id)
    if db.execute(select(exists().where(Ingredient.victual_id == victual_id))).scalar():
        raise ConflictError("victual_in_use")
    db.delete(victual)
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        raise ConflictError("victual_conflict") from e
    return Response(str(victual_id), mimetype="text/plain")


__all__ = ["bp", "serialize_victual"]
