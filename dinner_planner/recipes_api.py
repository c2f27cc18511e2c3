"""Recipes API: recipes, their ingredients and their illustrations.

Anyone passing the gate may read; a recipe, its ingredients and its
illustration list change only at the hands of its author or an admin.
A recipe's diet is derived from its ingredients' victuals and can be
filtered on, but never written.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .app_authz import enforce_author_or_admin, require_requester
from .concurrency import check_version
from .db import get_session
from .documents_api import resolve_document, serialize_document
from .errors import ConflictError, NotFoundError
from .models import Category, Diet, Document, Ingredient, Recipe, Unit, Victual, recipe_illustrations
from .pagination import apply_page, page_select, parse_page_params
from .validation import (
    FieldErrors,
    bool_arg,
    enum_arg,
    enum_args,
    enum_field,
    filter_record_window,
    float_field,
    int_arg,
    int_field,
    json_body,
    object_field,
    raise_for,
    text_arg,
    text_field,
)
from .victuals_api import serialize_victual

log = logging.getLogger(__name__)

bp = Blueprint("recipes_api", __name__, url_prefix="/recipes")


def serialize_recipe(r: Recipe) -> dict:
    return {
        "id": r.id,
        "version": r.version,
        "created": r.created_at.isoformat() if r.created_at else None,
        "modified": r.updated_at.isoformat() if r.updated_at else None,
        "category": r.category.value,
        "title": r.title,
        "description": r.description,
        "instruction": r.instruction,
        "diet": r.diet.value,
        "ingredient-count": len(r.ingredients),
        "illustration-count": len(r.illustrations),
        "avatar-reference": r.avatar_id,
        "author-reference": r.author_id,
    }


def serialize_ingredient(i: Ingredient) -> dict:
    return {
        "id": i.id,
        "version": i.version,
        "created": i.created_at.isoformat() if i.created_at else None,
        "modified": i.updated_at.isoformat() if i.updated_at else None,
        "amount": i.amount,
        "unit": i.unit.value,
        "victual": serialize_victual(i.victual),
        "recipe-reference": i.recipe_id,
    }


def _recipe(db: Session, recipe_id: int) -> Recipe:
    recipe = db.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFoundError("recipe_not_found")
    return recipe


def _owned_recipe(db: Session, recipe_id: int) -> Recipe:
    recipe = _recipe(db, recipe_id)
    enforce_author_or_admin(g.requester, recipe.author_id)
    return recipe


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as e:
        db.rollback()
        log.warning("%s commit failed: %s", what, e)
        raise ConflictError(f"{what}_conflict") from e


_INGREDIENT_COUNT = (
    select(func.count(Ingredient.id)).where(Ingredient.recipe_id == Recipe.id).correlate(Recipe).scalar_subquery()
)
_ILLUSTRATION_COUNT = (
    select(func.count())
    .select_from(recipe_illustrations)
    .where(recipe_illustrations.c.recipe_id == Recipe.id)
    .correlate(Recipe)
    .scalar_subquery()
)


@bp.get("")
def query_recipes():
    args = request.args
    page = parse_page_params(dict(args))
    stmt = filter_record_window(select(Recipe), Recipe, args)
    category = enum_arg(Category, args, "category")
    if category is not None:
        stmt = stmt.where(Recipe.category == category)
    for name, column in (
        ("title-fragment", Recipe.title),
        ("description-fragment", Recipe.description),
        ("instruction-fragment", Recipe.instruction),
    ):
        fragment = text_arg(args, name)
        if fragment is not None:
            stmt = stmt.where(column.contains(fragment, autoescape=True))
    authored = bool_arg(args, "authored")
    if authored is not None:
        stmt = stmt.where(Recipe.author_id.is_not(None) if authored else Recipe.author_id.is_(None))
    for name, count, lower in (
        ("min-ingredient-count", _INGREDIENT_COUNT, True),
        ("max-ingredient-count", _INGREDIENT_COUNT, False),
        ("min-illustration-count", _ILLUSTRATION_COUNT, True),
        ("max-illustration-count", _ILLUSTRATION_COUNT, False),
    ):
        bound = int_arg(args, name, minimum=1)
        if bound is not None:
            stmt = stmt.where(count >= bound if lower else count <= bound)
    stmt = stmt.order_by(Recipe.title, Recipe.id)

    diets = enum_args(Diet, args, "diet")
    db = get_session()
    if not diets:
        recipes = list(db.execute(page_select(stmt, page)).scalars())
    else:
        # Diet is derived, so this filter runs after loading and paging follows it
        matching = [r for r in db.execute(stmt).scalars() if r.diet in diets]
        recipes = apply_page(matching, page)
    return jsonify([serialize_recipe(r) for r in recipes])


@bp.get("/<int:recipe_id>")
def find_recipe(recipe_id: int):
    return jsonify(serialize_recipe(_recipe(get_session(), recipe_id)))


@bp.get("/<int:recipe_id>/author")
def find_recipe_author(recipe_id: int):
    from .people_api import serialize_person

    recipe = _recipe(get_session(), recipe_id)
    if recipe.author is None:
        raise NotFoundError("author_not_found")
    return jsonify(serialize_person(recipe.author))


@bp.post("")
@require_requester
def insert_or_update_recipe():
    data = json_body()
    errors: FieldErrors = []
    recipe_id = int_field(data, "id", errors) or 0
    version = int_field(data, "version", errors)
    category = enum_field(Category, data.get("category"), "category", errors, Category.MAIN_COURSE)
    title = text_field(data, "title", errors, max_length=128, required=True)
    description = text_field(data, "description", errors, max_length=4094)
    instruction = text_field(data, "instruction", errors, max_length=4094)
    raise_for(errors)

    db = get_session()
    avatar_id = resolve_document(db, data.get("avatar-reference"))
    if not recipe_id:
        recipe = Recipe(author_id=g.requester.id)
        db.add(recipe)
    else:
        recipe = _owned_recipe(db, recipe_id)
        check_version(recipe.version, version, resource="recipe")
    recipe.category = category
    recipe.title = title
    recipe.description = description
    recipe.instruction = instruction
    if avatar_id is not None:
        recipe.avatar_id = avatar_id
    _commit(db, "recipe")
    return Response(str(recipe.id), status=201 if not recipe_id else 200, mimetype="text/plain")


@bp.delete("/<int:recipe_id>")
@require_requester
def delete_recipe(recipe_id: int):
    db = get_session()
    recipe = _owned_recipe(db, recipe_id)
    # Ingredients go with the recipe; illustrations are only unlinked
    db.delete(recipe)
    _commit(db, "recipe")
    return Response(str(recipe_id), mimetype="text/plain")


# --- ingredients ---
@bp.get("/<int:recipe_id>/ingredients")
def query_recipe_ingredients(recipe_id: int):
    recipe = _recipe(get_session(), recipe_id)
    page = parse_page_params(dict(request.args))
    return jsonify([serialize_ingredient(i) for i in apply_page(recipe.ingredients, page)])


def _victual_reference(data: dict, errors: FieldErrors) -> int | None:
    """Accept ``victual-reference`` or a nested ``victual`` object carrying an id."""
    if data.get("victual-reference") is not None:
        return int_field(data, "victual-reference", errors)
    nested = object_field(data, "victual", errors)
    victual_id = int_field(nested, "id", errors) if nested else None
    if victual_id is None and not errors:
        errors.append({"name": "victual-reference", "reason": "required"})
    return victual_id


@bp.post("/<int:recipe_id>/ingredients")
@require_requester
def insert_or_update_recipe_ingredient(recipe_id: int):
    data = json_body()
    errors: FieldErrors = []
    ingredient_id = int_field(data, "id", errors) or 0
    version = int_field(data, "version", errors)
    amount = float_field(data, "amount", errors, minimum=0)
    unit = enum_field(Unit, data.get("unit"), "unit", errors, Unit.GRAM)
    victual_id = _victual_reference(data, errors)
    raise_for(errors)

    db = get_session()
    recipe = _owned_recipe(db, recipe_id)
    victual = db.get(Victual, victual_id)
    if victual is None:
        raise NotFoundError("victual_not_found")
    if not ingredient_id:
        ingredient = Ingredient(recipe=recipe)
        db.add(ingredient)
    else:
        ingredient = db.get(Ingredient, ingredient_id)
        if ingredient is None:
            raise NotFoundError("ingredient_not_found")
        if ingredient.recipe_id != recipe.id:
            raise ConflictError("ingredient_of_other_recipe")
        check_version(ingredient.version, version, resource="ingredient")
    ingredient.amount = amount if amount is not None else 0.0
    ingredient.unit = unit
    ingredient.victual = victual
    _commit(db, "ingredient")
    return Response(str(ingredient.id), status=201 if not ingredient_id else 200, mimetype="text/plain")


@bp.delete("/<int:recipe_id>/ingredients/<int:ingredient_id>")
@require_requester
def delete_recipe_ingredient(recipe_id: int, ingredient_id: int):
    db = get_session()
    recipe = _owned_recipe(db, recipe_id)
    ingredient = db.get(Ingredient, ingredient_id)
    if ingredient is None:
        raise NotFoundError("ingredient_not_found")
    if ingredient.recipe_id != recipe.id:
        raise ConflictError("ingredient_of_other_recipe")
    recipe.ingredients.remove(ingredient)
    _commit(db, "ingredient")
    return Response(str(ingredient_id), mimetype="text/plain")


# --- illustrations ---
@bp.get("/<int:recipe_id>/illustrations")
def query_recipe_illustrations(recipe_id: int):
    recipe = _recipe(get_session(), recipe_id)
    page = parse_page_params(dict(request.args))
    return jsonify([serialize_document(d) for d in apply_page(recipe.illustrations, page)])


def _illustration(db: Session, document_id: int) -> Document:
    doc = db.get(Document, document_id)
    if doc is None:
        raise NotFoundError("document_not_found")
    return doc


@bp.patch("/<int:recipe_id>/illustrations/<int:document_id>")
@require_requester
def add_recipe_illustration(recipe_id: int, document_id: int):
    db = get_session()
    recipe = _owned_recipe(db, recipe_id)
    doc = _illustration(db, document_id)
    if doc not in recipe.illustrations:
        recipe.illustrations.append(doc)
        _commit(db, "illustration")
    return Response(str(document_id), mimetype="text/plain")


@bp.delete("/<int:recipe_id>/illustrations/<int:document_id>")
@require_requester
def remove_recipe_illustration(recipe_id: int, document_id: int):
    db = get_session()
    recipe = _owned_recipe(db, recipe_id)
    doc = _illustration(db, document_id)
    if doc in recipe.illustrations:
        recipe.illustrations.remove(doc)
        _commit(db, "illustration")
    return Response(str(document_id), mimetype="text/plain")


__all__ = ["bp", "serialize_recipe", "serialize_ingredient"]
