"""Authentication & quota gate.

Installed as a ``before_request`` hook. For every request it

1. rejects a caller-supplied ``X-Requester-Identity`` header (400),
2. strips ``Authorization`` and ``X-Access-Key`` from the WSGI environ so
   handlers never see raw credentials or keys,
3. lets CORS preflights and public document / discovery reads through,
4. charges the access key against its plan's monthly quota (429 / 409),
5. lets self-registration (``POST /people``) through without credentials,
6. verifies HTTP Basic credentials against the stored password digest
   (401 + ``WWW-Authenticate: Basic``; 400 for undecodable payloads),
7. injects ``X-Requester-Identity`` with the authenticated person's id.

Quota is charged before credentials are checked, so a request that later
fails authentication or fails downstream still consumes one unit.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import NamedTuple

from flask import Flask, request
from sqlalchemy import select
from werkzeug.security import check_password_hash

from .db import get_new_session
from .errors import BadRequestError, UnauthorizedError
from .models import Person
from .quota import QuotaLedger

log = logging.getLogger(__name__)

HEADER_ACCESS_KEY = "X-Access-Key"
HEADER_REQUESTER_IDENTITY = "X-Requester-Identity"

_ENV_AUTHORIZATION = "HTTP_AUTHORIZATION"
_ENV_ACCESS_KEY = "HTTP_X_ACCESS_KEY"
_ENV_REQUESTER_IDENTITY = "HTTP_X_REQUESTER_IDENTITY"

READ_METHODS = frozenset({"GET", "HEAD"})


class Credentials(NamedTuple):
    email: str
    password: str


def parse_basic_credentials(header_value: str) -> Credentials:
    """Decode ``Basic <base64(email:password)>``; split once on the first colon.

    Raises BadRequestError when the payload is not valid base64/UTF-8 or has
    no colon.
    """
    payload = header_value[len("Basic ") :].strip()
    try:
        text = base64.b64decode(payload, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise BadRequestError("malformed_credentials") from e
    email, sep, password = text.partition(":")
    if not sep:
        raise BadRequestError("malformed_credentials")
    return Credentials(email, password)


class Gate:
    def __init__(
        self,
        ledger: QuotaLedger,
        *,
        discovery_path: str = "/openapi.json",
        public_document_prefix: str = "/documents/",
        registration_path: str = "/people",
    ) -> None:
        self.ledger = ledger
        self.discovery_path = discovery_path
        self.public_document_prefix = public_document_prefix
        self.registration_path = registration_path.rstrip("/")

    def init_app(self, app: Flask) -> None:
        app.extensions["gate"] = self
        app.before_request(self.check)

    def is_public_read(self, method: str, path: str) -> bool:
        if method not in READ_METHODS:
            return False
        return path == self.discovery_path or path.startswith(self.public_document_prefix)

    def is_registration(self, method: str, path: str) -> bool:
        return method == "POST" and path.rstrip("/") == self.registration_path

    def check(self) -> None:
        environ = request.environ
        if _ENV_REQUESTER_IDENTITY in environ:
            log.warning("Gate rejected: spoofed %s header", HEADER_REQUESTER_IDENTITY)
            raise BadRequestError("spoofed_requester_identity")

        credentials = environ.pop(_ENV_AUTHORIZATION, None)
        access_key = environ.pop(_ENV_ACCESS_KEY, None)

        method = request.method
        path = request.path
        if method == "OPTIONS" or self.is_public_read(method, path):
            return None

        self.ledger.admit(access_key)

        if self.is_registration(method, path):
            return None

        if not credentials or not credentials.startswith("Basic "):
            log.warning("Gate rejected: missing or non-basic credentials")
            raise UnauthorizedError()
        email, password = parse_basic_credentials(credentials)

        db = get_new_session()
        try:
            person = db.execute(select(Person).where(Person.email == email)).scalars().first()
            if person is None or not check_password_hash(person.password_hash, password):
                log.warning("Gate rejected: invalid credentials")
                raise UnauthorizedError()
            environ[_ENV_REQUESTER_IDENTITY] = str(person.id)
        finally:
            db.close()
        return None


__all__ = [
    "Gate",
    "Credentials",
    "parse_basic_credentials",
    "HEADER_ACCESS_KEY",
    "HEADER_REQUESTER_IDENTITY",
]
