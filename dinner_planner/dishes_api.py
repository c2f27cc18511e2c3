"""Dishes API: named dish types that meal types may point at."""

from __future__ import annotations

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .app_authz import enforce_author_or_admin, require_requester
from .concurrency import check_version
from .db import get_session
from .errors import ConflictError, NotFoundError
from .models import Dish, MealType
from .pagination import page_select, parse_page_params
from .validation import filter_record_window, int_field, json_body, raise_for, text_arg, text_field

bp = Blueprint("dishes_api", __name__, url_prefix="/dishes")


def serialize_dish(d: Dish) -> dict:
    return {
        "id": d.id,
        "version": d.version,
        "created": d.created_at.isoformat() if d.created_at else None,
        "modified": d.updated_at.isoformat() if d.updated_at else None,
        "dish-type": d.dish_type,
        "author-reference": d.author_id,
    }


def _dish(db: Session, dish_id: int) -> Dish:
    dish = db.get(Dish, dish_id)
    if dish is None:
        raise NotFoundError("dish_not_found")
    return dish


@bp.get("")
def query_dishes():
    args = request.args
    page = parse_page_params(dict(args))
    stmt = filter_record_window(select(Dish), Dish, args)
    fragment = text_arg(args, "dish-type")
    if fragment is not None:
        stmt = stmt.where(Dish.dish_type.contains(fragment, autoescape=True))
    stmt = page_select(stmt.order_by(Dish.dish_type, Dish.id), page)
    return jsonify([serialize_dish(d) for d in get_session().execute(stmt).scalars()])


@bp.get("/<int:dish_id>")
def find_dish(dish_id: int):
    return jsonify(serialize_dish(_dish(get_session(), dish_id)))


@bp.post("")
@require_requester
def insert_or_update_dish():
    data = json_body()
    errors: list[dict[str, str]] = []
    dish_id = int_field(data, "id", errors) or 0
    version = int_field(data, "version", errors)
    dish_type = text_field(data, "dish-type", errors, max_length=128)
    raise_for(errors)

    db = get_session()
    if not dish_id:
        dish = Dish(author_id=g.requester.id)
        db.add(dish)
    else:
        dish = _dish(db, dish_id)
        enforce_author_or_admin(g.requester, dish.author_id)
        check_version(dish.version, version, resource="dish")
    dish.dish_type = dish_type
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        raise ConflictError("dish_conflict") from e
    return Response(str(dish.id), status=201 if not dish_id else 200, mimetype="text/plain")


@bp.delete("/<int:dish_id>")
@require_requester
def delete_dish(dish_id: int):
    db = get_session()
    dish = _dish(db, dish_id)
    enforce_author_or_admin(g.requester, dish.author_id)
    # Meal types keep their slot and lose the dish
    db.execute(
        update(MealType).where(MealType.dish_id == dish_id).values(dish_id=None).execution_options(synchronize_session=False)
    )
    db.delete(dish)
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        raise ConflictError("dish_conflict") from e
    return Response(str(dish_id), mimetype="text/plain")


__all__ = ["bp", "serialize_dish"]
