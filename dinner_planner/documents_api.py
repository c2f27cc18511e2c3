"""Documents API: content-addressed binary uploads and public reads.

Uploads are deduplicated by the sha256 of their content; posting the same
bytes twice updates the existing document's type/description instead of
creating a second row. Reads are public (the gate skips quota and
credentials for them) and negotiate between the raw content and a JSON
metadata projection. Listing, uploading and deleting go through the gate;
only administrators delete, and only documents nothing references.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .app_authz import is_admin, require_requester
from .db import get_session
from .errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotAcceptableError,
    NotFoundError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from .models import Document, Person, Recipe, Victual, recipe_illustrations, sha256_hex
from .pagination import page_select, parse_page_params
from .validation import filter_record_window, int_arg, text_arg

log = logging.getLogger(__name__)

bp = Blueprint("documents_api", __name__, url_prefix="/documents")

HEADER_CONTENT_DESCRIPTION = "X-Content-Description"
METADATA_TYPE = "application/json"
# Structured payloads belong in their own resources, not in the document store
REJECTED_TYPES = frozenset({"application/json", "application/xml", "text/xml"})


def _base_type(value: str) -> str:
    return value.split(";", 1)[0].strip().lower()


def is_compatible(doc_type: str, pattern: str) -> bool:
    """True when ``doc_type`` matches a media range such as ``image/*``."""
    main, _, sub = _base_type(doc_type).partition("/")
    p_main, _, p_sub = _base_type(pattern).partition("/")
    if p_main == "*":
        return True
    if p_main != main:
        return False
    return p_sub in ("*", "") or p_sub == sub


def resolve_document(db: Session, raw: object) -> int | None:
    """Validate a document reference: 400 unless an integer, 404 unless stored."""
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise BadRequestError("invalid_document_reference")
    if db.get(Document, raw) is None:
        raise NotFoundError("document_not_found")
    return raw


def serialize_document(doc: Document) -> dict:
    return {
        "id": doc.id,
        "version": doc.version,
        "created": doc.created_at.isoformat() if doc.created_at else None,
        "modified": doc.updated_at.isoformat() if doc.updated_at else None,
        "hash": doc.hash,
        "type": doc.type,
        "description": doc.description,
        "size": len(doc.content or b""),
    }


@bp.get("")
def query_documents():
    args = request.args
    page = parse_page_params(dict(args))
    stmt = filter_record_window(select(Document), Document, args)
    digest = text_arg(args, "hash")
    if digest is not None:
        if len(digest) != 64:
            raise BadRequestError("invalid hash parameter")
        stmt = stmt.where(Document.hash == digest.lower())
    for name, column in (("type-fragment", Document.type), ("description-fragment", Document.description)):
        fragment = text_arg(args, name)
        if fragment is not None:
            stmt = stmt.where(column.contains(fragment, autoescape=True))
    min_size = int_arg(args, "min-size", minimum=0)
    if min_size is not None:
        stmt = stmt.where(func.length(Document.content) >= min_size)
    max_size = int_arg(args, "max-size", minimum=0)
    if max_size is not None:
        stmt = stmt.where(func.length(Document.content) <= max_size)
    stmt = page_select(stmt.order_by(Document.id), page)
    return jsonify([serialize_document(doc) for doc in get_session().execute(stmt).scalars()])


@bp.post("")
@require_requester
def insert_or_update_document():
    doc_type = (request.content_type or "").strip()
    if not 3 <= len(doc_type) <= 63:
        raise ValidationError([{"name": "Content-Type", "reason": "length"}])
    if _base_type(doc_type) in REJECTED_TYPES:
        raise UnsupportedMediaTypeError("document_type_not_supported")
    description = request.headers.get(HEADER_CONTENT_DESCRIPTION)
    if description is not None and len(description) > 127:
        raise ValidationError([{"name": HEADER_CONTENT_DESCRIPTION, "reason": "length"}])
    content = request.get_data(cache=False)

    db = get_session()
    doc = db.execute(select(Document).where(Document.hash == sha256_hex(content))).scalars().first()
    created = doc is None
    if created:
        doc = Document(content, type=doc_type, description=description)
        db.add(doc)
    else:
        doc.type = doc_type
        doc.description = description
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("document_conflict") from e
    log.info("Document %s %s (%s, %d bytes)", doc.id, "stored" if created else "updated", doc_type, len(content))
    return Response(str(doc.id), status=201 if created else 200, mimetype="text/plain")


@bp.get("/<int:document_id>")
def find_document(document_id: int):
    doc = get_session().get(Document, document_id)
    if doc is None:
        raise NotFoundError("document_not_found")

    accept = request.accept_mimetypes
    if not accept:
        chosen = _base_type(doc.type)
    else:
        chosen = accept.best_match([_base_type(doc.type), METADATA_TYPE])
        if chosen is None:
            raise NotAcceptableError("no_acceptable_representation")
    if chosen == METADATA_TYPE:
        resp = jsonify(serialize_document(doc))
    else:
        resp = Response(doc.content, content_type=doc.type)
    resp.set_etag(doc.hash)
    return resp


def _is_referenced(db: Session, document_id: int) -> bool:
    checks = (
        exists().where(Person.avatar_id == document_id),
        exists().where(Victual.avatar_id == document_id),
        exists().where(Recipe.avatar_id == document_id),
        exists().where(recipe_illustrations.c.document_id == document_id),
    )
    return any(db.execute(select(check)).scalar() for check in checks)


@bp.delete("/<int:document_id>")
@require_requester
def delete_document(document_id: int):
    db = get_session()
    doc = db.get(Document, document_id)
    if doc is None:
        raise NotFoundError("document_not_found")
    if not is_admin(g.requester):
        raise ForbiddenError("admin_required")
    if _is_referenced(db, document_id):
        raise ConflictError("document_in_use")
    db.delete(doc)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError("document_conflict") from e
    log.info("Document %s deleted by person %s", document_id, g.requester.id)
    return Response(str(document_id), mimetype="text/plain")


__all__ = ["bp", "is_compatible", "resolve_document", "serialize_document"]
