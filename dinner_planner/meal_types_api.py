"""Meal types API: ordered course slots with dense course numbers."""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from .app_authz import require_requester
from .db import get_new_session, get_session
from .errors import ValidationError
from .meal_type_service import MealTypeService, MealTypeTemplate
from .models import CourseType, MealType
from .pagination import parse_page_params
from .validation import int_field, json_body

bp = Blueprint("meal_types_api", __name__, url_prefix="/meal-types")


def _serialize(mt: MealType) -> dict:
    return {
        "id": mt.id,
        "version": mt.version,
        "created": mt.created_at.isoformat() if mt.created_at else None,
        "modified": mt.updated_at.isoformat() if mt.updated_at else None,
        "course-number": mt.course_number,
        "course-type": mt.course_type.value if mt.course_type else None,
        "author-reference": mt.author_id,
        "dish-reference": mt.dish_id,
    }


def _course_type(raw: object, errors: list[dict[str, str]]) -> CourseType | None:
    if raw is None:
        return None
    try:
        return CourseType(str(raw))
    except ValueError:
        errors.append({"name": "course-type", "reason": "invalid"})
        return None


def _template_from_json(data: dict) -> MealTypeTemplate:
    errors: list[dict[str, str]] = []
    template = MealTypeTemplate(
        id=int_field(data, "id", errors) or 0,
        version=int_field(data, "version", errors),
        course_number=int_field(data, "course-number", errors),
        course_type=_course_type(data.get("course-type"), errors),
        dish_id=int_field(data, "dish-reference", errors),
    )
    if errors:
        raise ValidationError(errors)
    return template


def _service(db) -> MealTypeService:
    return MealTypeService(
        db,
        locks=current_app.extensions["structure_locks"],
        isolation_level=current_app.config.get("SEQUENCER_ISOLATION_LEVEL"),
    )


@bp.get("")
def query_meal_types():
    errors: list[dict[str, str]] = []
    course_type = _course_type(request.args.get("course-type"), errors)
    if errors:
        raise ValidationError(errors)
    page = parse_page_params(dict(request.args))
    items = _service(get_session()).query(course_type=course_type, page=page)
    return jsonify([_serialize(mt) for mt in items])


@bp.get("/<int:meal_type_id>")
def find_meal_type(meal_type_id: int):
    return jsonify(_serialize(_service(get_session()).get(meal_type_id)))


@bp.post("")
@require_requester
def insert_or_update_meal_type():
    template = _template_from_json(json_body())
    db = get_new_session()
    try:
        entity = _service(db).save(g.requester.id, template)
        return jsonify(_serialize(entity)), (201 if not template.id else 200)
    finally:
        db.close()


@bp.delete("/<int:meal_type_id>")
@require_requester
def delete_meal_type(meal_type_id: int):
    db = get_new_session()
    try:
        removed = _service(db).delete(g.requester.id, meal_type_id)
        return jsonify({"ok": True, "id": removed})
    finally:
        db.close()
