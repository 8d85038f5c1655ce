import os

# Settings are read when context is imported
os.environ["JWT_SECRET_KEY"] = "canvasstrac-test-secret"
os.environ["ACCESS_TEST_ROUTES"] = "1"
os.environ.pop("DISABLE_AUTH", None)
os.environ.pop("DEBUG", None)

import mongomock
import pytest
from werkzeug.security import generate_password_hash

import context
import dal.entities as entities
from dal.entity import bind_database
from dal.privileges import ROLE_ADMIN, ROLE_STAFF, ROLE_CANVASSER, ROLE_NONE
from runscripts.db_setup import setup_database


@pytest.fixture
def db():
    """
    A fresh mongomock database with the canonical roles and voting systems.
    """
    database = mongomock.MongoClient()["canvassTrac_test"]
    setup_database(database)
    yield database
    bind_database(context.canvassdb)


@pytest.fixture
def roles(db):
    """
    Role level -> role document
    """
    return { r["level"]: r for r in entities.roles.find() }


@pytest.fixture
def app(db):
    import start
    start.app.testing = True
    return start.app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(roles):
    """
    Create a user with a role level; returns (user document, token headers).
    """
    def _make_user(username, level, password="secret"):
        user = entities.users.create({
            "username": username,
            "password_hash": generate_password_hash(password),
            "role": roles[level]["_id"],
        })
        token = context.security.get_token({"username": username, "_id": str(user["_id"]), "role": str(user["role"])})["token"]
        return user, {"x-access-token": token}
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("admin", ROLE_ADMIN)


@pytest.fixture
def staff(make_user):
    return make_user("staff", ROLE_STAFF)


@pytest.fixture
def canvasser(make_user):
    return make_user("canvasser", ROLE_CANVASSER)


@pytest.fixture
def nobody(make_user):
    return make_user("nobody", ROLE_NONE)
