from pathlib import Path
import os
import sys

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
for path in (BACKEND_DIR, ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("JWT_SECRET_KEY", "kmun-test-secret-0123456789abcdef0123456789")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from accounts import create_account
from auth import build_token_claims, create_access_token
from database import Base, get_db
from models import Committee, InstitutionType, Portfolio, Registration, UserRole


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    from server import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=UserRole.DELEGATE, is_kumaraguru=False, email=None, password="secret123"):
        counter["n"] += 1
        return create_account(
            db_session,
            email=email or f"user{counter['n']}@example.com",
            password=password,
            first_name=f"User{counter['n']}",
            last_name="Tester",
            institution="Kumaraguru College of Technology",
            is_kumaraguru=is_kumaraguru,
            role=role,
        )

    return _make


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(build_token_claims(user))}"}


@pytest.fixture
def delegate(make_user):
    return make_user()


@pytest.fixture
def affairs_admin(make_user):
    return make_user(role=UserRole.DELEGATE_AFFAIRS)


@pytest.fixture
def dev_admin(make_user):
    return make_user(role=UserRole.DEV_ADMIN)


@pytest.fixture
def committee(db_session):
    row = Committee(
        name="Lok Sabha",
        institution_type=InstitutionType.COLLEGE,
        description="Lower house of Parliament",
        capacity=40,
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def portfolio(db_session, committee):
    row = Portfolio(committee_id=committee.id, name="Speaker", description="Presides", capacity=1, display_order=1)
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def registration(db_session, delegate):
    row = Registration(
        user_id=delegate.id,
        first_name=delegate.first_name,
        last_name=delegate.last_name,
        email=delegate.email,
        institution="Kumaraguru College of Technology",
        institution_type=InstitutionType.COLLEGE,
        committee_preference_1="Lok Sabha",
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=None):
        self.status_code = status_code
        self._payload = payload
        if content is not None:
            self.content = content
        else:
            self.content = b"" if payload is None else b"json"

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Routes ``(method, path)`` to canned responses and records every call."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def request(self, method, url, **kwargs):
        path = url.split("://", 1)[-1].split("/", 1)[-1]
        path = "/" + path
        self.calls.append({"method": method, "path": path, **kwargs})
        if (method, path) not in self.routes:
            return FakeResponse(404, {"detail": "Not Found"})
        handler = self.routes[(method, path)]
        if callable(handler):
            handler = handler(kwargs)
        if isinstance(handler, FakeResponse):
            return handler
        return FakeResponse(200, handler)

    def paths(self, method=None):
        return [call["path"] for call in self.calls if method is None or call["method"] == method]


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def api(fake_session):
    from portal.api import ApiClient

    return ApiClient(base_url="http://api.test", token="tok", session=fake_session)
