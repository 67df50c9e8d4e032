from datetime import datetime

import pytest

from vinylstock import create_app
from vinylstock.extensions import db
from vinylstock.models import Material, Roll, RollUsage

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "SECRET_KEY": "test",
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
    app.extensions["session_log"].cancel()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def auth_client(client):
    resp = client.post("/auth/login", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 302
    return client


@pytest.fixture
def material(app):
    m = Material(
        brand="3M",
        film_code="2080-G12",
        color_name="Gloss Black",
        finish="Gloss",
        width_in=60,
        reorder_threshold_in=2000,
    )
    db.session.add(m)
    db.session.commit()
    return m


@pytest.fixture
def roll(material):
    r = Roll(material_id=material.id, starting_length_in=1800, location="Rack A", status="open")
    db.session.add(r)
    db.session.commit()
    return r


def _add_usage(roll, used, waste=0, created_at=None, **extra):
    u = RollUsage(
        roll_id=roll.id,
        used_length_in=used,
        waste_length_in=waste,
        created_at=created_at or datetime.now(),
        **extra,
    )
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def add_usage(app):
    return _add_usage
