"""People API: self-registration, lookup, profile maintenance and access plan management."""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.security import generate_password_hash

from .app_authz import enforce_self_or_admin, is_admin, require_requester
from .concurrency import check_version
from .db import get_session
from .documents_api import is_compatible
from .errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from .models import AccessPlan, Dish, Document, Gender, Group, MealType, Person, Variant, access_key_for
from .pagination import apply_page, page_select, parse_page_params
from .recipes_api import serialize_recipe
from .validation import (
    FieldErrors,
    enum_arg,
    enum_field,
    filter_record_window,
    int_field,
    json_body,
    object_field,
    raise_for,
    text_arg,
    text_field,
)
from .victuals_api import serialize_victual

log = logging.getLogger(__name__)

bp = Blueprint("people_api", __name__, url_prefix="/people")

HEADER_SET_PASSWORD = "X-Set-Password"
DEFAULT_PASSWORD = "changeit"


def serialize_person(p: Person) -> dict:
    return {
        "id": p.id,
        "version": p.version,
        "email": p.email,
        "group": p.group.value,
        "gender": p.gender.value,
        "name": {"title": p.title, "family": p.surname, "given": p.forename},
        "address": {"postcode": p.postcode, "street": p.street, "city": p.city, "country": p.country},
        "avatar-reference": p.avatar_id,
    }


def _serialize_plan(plan: AccessPlan) -> dict:
    return {
        "id": plan.id,
        "version": plan.version,
        "application": plan.application,
        "variant": plan.variant.value,
        "limit": plan.variant.limit,
        "key": plan.key,
        "tenant-reference": plan.tenant_id,
        "counters": [{"year": c.year, "month": c.month, "amount": c.amount} for c in plan.counters],
    }


def _apply_profile(person: Person, data: dict, errors: FieldErrors) -> Group:
    """Copy email, gender, name and address onto ``person``; returns the requested group."""
    name = object_field(data, "name", errors)
    address = object_field(data, "address", errors)
    raw_email = data.get("email")
    email = raw_email.strip().lower() if isinstance(raw_email, str) else ""
    if not email or "@" not in email or len(email) > 128:
        errors.append({"name": "email", "reason": "invalid"})
    person.email = email
    person.gender = enum_field(Gender, data.get("gender"), "gender", errors, Gender.DIVERSE)
    person.title = text_field(name, "title", errors, max_length=15, label="name.title")
    person.surname = text_field(name, "family", errors, max_length=31, required=True, label="name.family")
    person.forename = text_field(name, "given", errors, max_length=31, required=True, label="name.given")
    for key, limit in (("postcode", 15), ("street", 63), ("city", 63), ("country", 63)):
        setattr(person, key, text_field(address, key, errors, max_length=limit, label=f"address.{key}"))
    return enum_field(Group, data.get("group"), "group", errors, person.group or Group.USER)


def _password_header() -> str | None:
    password = request.headers.get(HEADER_SET_PASSWORD)
    if password is not None and len(password) < 2:
        raise ValidationError([{"name": HEADER_SET_PASSWORD, "reason": "too_short"}])
    return password


def _resolve_avatar(db, raw: object) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise BadRequestError("invalid_avatar_reference")
    avatar = db.get(Document, raw)
    if avatar is None or not is_compatible(avatar.type, "image/*"):
        raise BadRequestError("invalid_avatar_reference")
    return avatar.id


def _person(db, person_id: int) -> Person:
    person = db.get(Person, person_id)
    if person is None:
        raise NotFoundError("person_not_found")
    return person


@bp.get("")
def query_people():
    args = request.args
    page = parse_page_params(dict(args))
    stmt = filter_record_window(select(Person), Person, args)
    email = text_arg(args, "email")
    if email is not None:
        stmt = stmt.where(Person.email == email.strip().lower())
    gender = enum_arg(Gender, args, "gender")
    if gender is not None:
        stmt = stmt.where(Person.gender == gender)
    group = enum_arg(Group, args, "group")
    if group is not None:
        stmt = stmt.where(Person.group == group)
    for name, column in (
        ("title", Person.title),
        ("surname", Person.surname),
        ("forename", Person.forename),
        ("postcode", Person.postcode),
        ("city", Person.city),
        ("country", Person.country),
    ):
        value = text_arg(args, name)
        if value is not None:
            stmt = stmt.where(column == value)
    street = text_arg(args, "street")
    if street is not None:
        stmt = stmt.where(Person.street.startswith(street, autoescape=True))
    stmt = page_select(stmt.order_by(Person.surname, Person.forename, Person.email), page)
    return jsonify([serialize_person(p) for p in get_session().execute(stmt).scalars()])


@bp.post("")
def insert_person():
    """Self-registration; reachable with an access key but without credentials."""
    data = json_body()
    if data.get("id") not in (None, 0):
        raise BadRequestError("identity_must_be_zero")
    password = _password_header()

    errors: FieldErrors = []
    person = Person()
    _apply_profile(person, data, errors)
    raise_for(errors)
    # Self-registration never grants ADMIN
    person.group = Group.USER
    person.password_hash = generate_password_hash(password if password is not None else DEFAULT_PASSWORD)
    db = get_session()
    try:
        person.avatar_id = _resolve_avatar(db, data.get("avatar-reference"))
        db.add(person)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("email_taken") from e
    return Response(str(person.id), status=201, mimetype="text/plain")


@bp.get("/requester")
@require_requester
def find_requester():
    return jsonify(serialize_person(g.requester))


@bp.get("/<int:person_id>")
@require_requester
def find_person(person_id: int):
    return jsonify(serialize_person(_person(get_session(), person_id)))


@bp.put("/<int:person_id>")
@require_requester
def update_person(person_id: int):
    """Update a profile. Non-admins may edit only themselves and never raise their group."""
    requester: Person = g.requester
    data = json_body()
    errors: FieldErrors = []
    template_id = int_field(data, "id", errors)
    version = int_field(data, "version", errors)
    raise_for(errors)
    if template_id != person_id:
        raise BadRequestError("identity_mismatch")
    enforce_self_or_admin(requester, person_id)
    password = _password_header()

    db = get_session()
    person = _person(db, person_id)
    check_version(person.version, version, resource="person")
    avatar_id = _resolve_avatar(db, data.get("avatar-reference"))
    group = _apply_profile(person, data, errors)
    raise_for(errors)
    # ADMIN may set any group, everyone else may only step down to USER
    if is_admin(requester) or group == Group.USER:
        person.group = group
    if password is not None:
        person.password_hash = generate_password_hash(password)
    if avatar_id is not None:
        person.avatar_id = avatar_id
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        raise ConflictError("person_conflict") from e
    return Response(str(person.id), mimetype="text/plain")


@bp.delete("/<int:person_id>")
@require_requester
def delete_person(person_id: int):
    db = get_session()
    person = _person(db, person_id)
    enforce_self_or_admin(g.requester, person_id)
    # Access plans and their counters go with the person; authored content stays, unattributed
    for model in (MealType, Dish):
        db.execute(
            update(model)
            .where(model.author_id == person_id)
            .values(author_id=None)
            .execution_options(synchronize_session=False)
        )
    db.delete(person)
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        raise ConflictError("person_conflict") from e
    log.info("Person %s deleted by person %s", person_id, g.requester.id)
    return Response(str(person_id), mimetype="text/plain")


@bp.get("/<int:person_id>/recipes")
def query_person_recipes(person_id: int):
    person = _person(get_session(), person_id)
    page = parse_page_params(dict(request.args))
    return jsonify([serialize_recipe(r) for r in apply_page(person.recipes, page)])


@bp.get("/<int:person_id>/victuals")
def query_person_victuals(person_id: int):
    person = _person(get_session(), person_id)
    page = parse_page_params(dict(request.args))
    return jsonify([serialize_victual(v) for v in apply_page(person.victuals, page)])


@bp.get("/<int:person_id>/access-plans")
@require_requester
def query_person_access_plans(person_id: int):
    person = _person(get_session(), person_id)
    enforce_self_or_admin(g.requester, person_id)
    page = parse_page_params(dict(request.args))
    return jsonify([_serialize_plan(p) for p in apply_page(person.access_plans, page)])


@bp.post("/<int:person_id>/access-plans")
@require_requester
def insert_or_update_access_plan(person_id: int):
    requester: Person = g.requester
    if requester.id != person_id:
        raise BadRequestError("requester_mismatch")
    data = json_body()
    errors: FieldErrors = []
    plan_id = int_field(data, "id", errors) or 0
    version = int_field(data, "version", errors)
    variant = enum_field(Variant, data.get("variant"), "variant", errors, Variant.ALPHA)
    raise_for(errors)
    if variant == Variant.OMEGA and not is_admin(requester):
        raise ForbiddenError("omega_requires_admin")

    db = get_session()
    if not plan_id:
        application = text_field(data, "application", errors, max_length=128, required=True)
        raise_for(errors)
        application = application.strip()
        if not application:
            raise ValidationError([{"name": "application", "reason": "required"}])
        plan = AccessPlan(
            tenant_id=requester.id,
            application=application,
            variant=variant,
            key=access_key_for(requester.id, application),
        )
        db.add(plan)
    else:
        plan = db.execute(
            select(AccessPlan).where(AccessPlan.id == plan_id, AccessPlan.tenant_id == requester.id)
        ).scalars().first()
        if plan is None:
            raise NotFoundError("access_plan_not_found")
        check_version(plan.version, version, resource="access_plan")
        plan.variant = variant
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("access_plan_conflict") from e
    return Response(str(plan.id), status=201 if not plan_id else 200, mimetype="text/plain")


__all__ = ["bp", "serialize_person"]
