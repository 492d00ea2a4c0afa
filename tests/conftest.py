"""Shared fixtures: a fresh in-memory database per test."""

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from config import TestConfig
from extensions import db as _db
from tests.factories import make_user


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_user(app):
    return make_user(name="Admin", email="admin@crm.test", role="ADMIN")


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_access_token(identity=admin_user.id)}"}


@pytest.fixture
def agent_headers(app):
    agent = make_user(name="Plain Agent", email="plain@crm.test", role="agent")
    return {"Authorization": f"Bearer {create_access_token(identity=agent.id)}"}
