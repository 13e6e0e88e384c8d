"""Pytest configuration and fixtures for API tests."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["API_PREFIX"] = "/api/v1"
os.environ["COS_BUCKET"] = ""
os.environ["EMAIL_HOST"] = ""

import pytest
from fastapi.testclient import TestClient

from core.mailer import MailError, get_mailer
from core.security import create_access_token, hash_password
from core.storage import InMemoryStorageClient, get_storage
from database import Base, SessionLocal, engine
from main import app
from models.user import Role, User

API = "/api/v1"
PASSWORD = "secret123"


class FakeMailer:
    """Records reset mails instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_password_reset(self, to, name, reset_url):
        if self.fail:
            raise MailError("SMTP unavailable")
        self.sent.append({"to": to, "name": name, "reset_url": reset_url})


@pytest.fixture(autouse=True)
def _schema():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def storage():
    return InMemoryStorageClient()


@pytest.fixture
def client(mailer, storage):
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, email, *, name=None, role=Role.user, password=PASSWORD, **extra):
    user = User(
        email=email,
        name=name or email.split("@")[0],
        password_hash=hash_password(password),
        role=role,
        **extra,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bearer(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", name="Admin", role=Role.admin)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def member(db):
    return make_user(db, "member@example.com", name="Member")


@pytest.fixture
def member_headers(member):
    return bearer(member)
