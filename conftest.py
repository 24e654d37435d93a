import os

# Must be set before hygiene_backend.config is imported
os.environ["DB_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from hygiene_backend.db import Base, SessionLocal, engine
from hygiene_backend.models import User
from hygiene_backend.security import create_access_token, get_password_hash


PASSWORD = "Secret123"


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
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


def make_user(db, username, role="user", email=None):
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        hashed_password=get_password_hash(PASSWORD),
        first_name=username.capitalize(),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    token = create_access_token({"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(db):
    return make_user(db, "alice")


@pytest.fixture
def other_user(db):
    return make_user(db, "bob")


@pytest.fixture
def admin(db):
    return make_user(db, "admin", role="admin")


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def other_headers(other_user):
    return auth_headers(other_user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
