from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path

import pytest
from flask import g
from sqlalchemy import event
from werkzeug.security import generate_password_hash

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import create_app
from app.core.config import Config
from app.core.extensions import db
from app.core.models import (
    Cemetery,
    CemeteryParcel,
    CemeteryRow,
    Client,
    Grave,
    GraveStatus,
    Membership,
    Parish,
    User,
    seed_demo_data,
)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    LOG_LEVEL = "WARNING"
    APP_ENV = "testing"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        app.seed_ids = seed_demo_data(db.session)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ids(app):
    return app.seed_ids


@pytest.fixture
def client(app):
    return app.test_client()


def _login_as(client, email: str, password: str):
    def _login():
        return client.post("/auth/login", json={"email": email, "password": password})

    return _login


@pytest.fixture
def login_admin(client):
    return _login_as(client, "admin@parohie.local", "admin123")


@pytest.fixture
def login_operator(client):
    return _login_as(client, "operator@parohie.local", "operator123")


@pytest.fixture
def login_viewer(client):
    return _login_as(client, "viewer@parohie.local", "viewer123")


@pytest.fixture
def parish_context(app, ids):
    """Run service code as the demo parish, the way a logged-in request would."""

    @contextmanager
    def _context(parish_id: str | None = None):
        with app.test_request_context("/"):
            g.parish = db.session.get(Parish, parish_id or ids["parish_id"])
            yield g.parish

    return _context


@pytest.fixture
def query_counter(app):
    """Count SQL statements sent to the engine inside a ``with`` block."""

    @contextmanager
    def _count():
        statements: list[str] = []

        def _before_cursor_execute(_conn, _cursor, statement, *_args):
            statements.append(statement)

        event.listen(db.engine, "before_cursor_execute", _before_cursor_execute)
        try:
            yield statements
        finally:
            event.remove(db.engine, "before_cursor_execute", _before_cursor_execute)

    return _count


@pytest.fixture
def second_parish_grave(app):
    parish = Parish(name="Parohia Doi", code="PD2")
    user = User(email="doi@parohie.local", full_name="User Doi", password_hash=generate_password_hash("doi123"))
    db.session.add_all([parish, user])
    db.session.flush()
    db.session.add(Membership(user_id=user.id, parish_id=parish.id, role="admin"))
    cemetery = Cemetery(parish_id=parish.id, name="Cimitirul Doi", code="C2")
    db.session.add(cemetery)
    db.session.flush()
    parcel = CemeteryParcel(parish_id=parish.id, cemetery_id=cemetery.id, name="Parcela B", code="B")
    db.session.add(parcel)
    db.session.flush()
    row = CemeteryRow(parish_id=parish.id, cemetery_id=cemetery.id, parcel_id=parcel.id, name="Rand 9", code="R9")
    db.session.add(row)
    db.session.flush()
    grave = Grave(
        parish_id=parish.id,
        cemetery_id=cemetery.id,
        parcel_id=parcel.id,
        row_id=row.id,
        code="B-1",
        status=GraveStatus.FREE,
    )
    client = Client(parish_id=parish.id, first_name="Ana", last_name="Doi")
    db.session.add_all([grave, client])
    db.session.commit()
    return {"parish_id": parish.id, "grave_id": grave.id, "cemetery_id": cemetery.id, "client_id": client.id}
