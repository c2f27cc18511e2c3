import base64
import os
import sys
from datetime import UTC, datetime

import pytest

# Path setup before any project imports to satisfy E402
ROOT = os.path.dirname(__file__)
PARENT = os.path.abspath(os.path.join(ROOT, ".."))
if PARENT not in sys.path:  # pragma: no cover - environment dependent
    sys.path.insert(0, PARENT)

# Cheap digests keep the suite fast; check_password_hash reads the method from the digest
TEST_HASH_METHOD = "pbkdf2:sha256:1000"
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


def _lazy_imports():  # isolate heavy imports & satisfy lint ordering
    from dinner_planner.app_factory import create_app  # noqa: E402
    from dinner_planner.db import create_all  # noqa: E402

    return create_app, create_all


@pytest.fixture
def app_session(tmp_path):
    create_app, create_all = _lazy_imports()
    url = f"sqlite:///{tmp_path / 'test_app.db'}"
    app = create_app({"TESTING": True, "SECRET_KEY": "test", "database_url": url, "FORCE_DB_REINIT": True})
    with app.app_context():
        create_all()
    app.extensions["gate"].ledger.clock = lambda: FIXED_NOW
    return app


@pytest.fixture
def client(app_session):
    c = app_session.test_client()
    c.environ_base = {}
    return c


def basic_auth(email: str, password: str) -> str:
    token = base64.b64encode(f"{email}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def seed_person(email="ada@example.org", password="secret", group="USER", forename="Ada", surname="Lovelace"):
    from werkzeug.security import generate_password_hash

    from dinner_planner.db import get_new_session
    from dinner_planner.models import Group, Person

    db = get_new_session()
    try:
        p = Person(
            email=email,
            password_hash=generate_password_hash(password, method=TEST_HASH_METHOD),
            group=Group(group),
            forename=forename,
            surname=surname,
        )
        db.add(p)
        db.commit()
        return p.id
    finally:
        db.close()


def seed_plan(tenant_id: int, application="dinner-web", variant="ALPHA", used: int | None = None, now=FIXED_NOW):
    """Create an access plan and optionally pre-fill this month's counter. Returns the key."""
    from dinner_planner.db import get_new_session
    from dinner_planner.models import AccessCounter, AccessPlan, Variant, access_key_for

    db = get_new_session()
    try:
        key = access_key_for(tenant_id, application)
        plan = AccessPlan(tenant_id=tenant_id, application=application, variant=Variant(variant), key=key)
        db.add(plan)
        db.flush()
        if used is not None:
            db.add(AccessCounter(plan_id=plan.id, year=now.year, month=now.month, amount=used))
        db.commit()
        return key
    finally:
        db.close()


@pytest.fixture
def member(app_session):
    """A USER with an ALPHA plan; returns (person_id, headers)."""
    pid = seed_person()
    key = seed_plan(pid)
    return pid, {"Authorization": basic_auth("ada@example.org", "secret"), "X-Access-Key": key}


@pytest.fixture
def admin(app_session):
    pid = seed_person(email="root@example.org", password="toor", group="ADMIN", forename="Grace", surname="Hopper")
    key = seed_plan(pid, application="backoffice", variant="OMEGA")
    return pid, {"Authorization": basic_auth("root@example.org", "toor"), "X-Access-Key": key}
