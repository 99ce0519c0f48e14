import itertools
import os

# Configure the app before anything imports settings
os.environ["SESSION_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENV"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import lms_backend.models  # noqa: F401
from lms_backend.core.security import TokenCodec, get_token_codec
from lms_backend.db.base import Base
from lms_backend.db.seeds.seed_roles import seed_roles
from lms_backend.db.session import build_engine, get_db
from lms_backend.main import app
from lms_backend.models.role import RoleName
from lms_backend.models.user import UserStatus
from lms_backend.services.auth_service import auth_service
from lms_backend.services.hierarchy_service import hierarchy_service

TEST_ACCESS_SECRET = "test-access-secret"
TEST_REFRESH_SECRET = "test-refresh-secret"
DEFAULT_PASSWORD = "password123"


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_roles(session)
    yield session
    session.close()


@pytest.fixture
def codec():
    return TokenCodec(access_secret=TEST_ACCESS_SECRET, refresh_secret=TEST_REFRESH_SECRET)


@pytest.fixture
def client(db, session_factory, codec):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_codec] = lambda: codec
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Create a user directly in the database."""
    counter = itertools.count(1)

    def _make(
        role: RoleName,
        email: str = None,
        name: str = None,
        password: str = DEFAULT_PASSWORD,
        status: UserStatus = UserStatus.active,
        created_by: int = None,
    ):
        n = next(counter)
        return auth_service.create_user(
            db,
            name=name or f"{role.value.title()} {n}",
            email=email or f"{role.value}{n}@example.com",
            password=password,
            role=auth_service.get_role_by_name(db, role),
            status=status,
            created_by=created_by,
        )

    return _make


@pytest.fixture
def link(db):
    """Record ``owner -> owned`` and commit."""

    def _link(owner, owned):
        hierarchy_service.link(db, owner.id, owned.id, owned.role.role_name)
        db.commit()

    return _link


@pytest.fixture
def auth_headers(codec):
    def _headers(user):
        pair = codec.issue(user, user.role)
        return {"Authorization": f"Bearer {pair.access_token}"}

    return _headers
