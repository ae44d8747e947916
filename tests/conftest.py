"""
Pytest configuration.

Points the application at a throwaway SQLite database before anything from
taskboard is imported, then gives every test a fresh schema.
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="taskboard-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'bootstrap.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from taskboard.core.identity import Principal
from taskboard.core.security import create_access_token, get_password_hash
from taskboard.database import create_db_engine, get_db, init_db
from taskboard.main import app
from taskboard.models.tenant import Tenant, TenantStatus
from taskboard.models.user import User, UserRole

PASSWORD = "password123"


@pytest.fixture()
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    """
    TestClient sharing the test's session.

    Requests run one at a time, so the test can inspect the database
    between calls without lock contention.
    """

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_tenant(db, subdomain, max_users=5, max_projects=3, status=TenantStatus.ACTIVE):
    tenant = Tenant(
        name=f"{subdomain.capitalize()} Corp",
        subdomain=subdomain,
        status=status,
        max_users=max_users,
        max_projects=max_projects,
    )
    db.add(tenant)
    db.commit()
    return tenant


def make_user(db, tenant, email, role=UserRole.USER, is_active=True):
    user = User(
        tenant_id=tenant.id if tenant else None,
        email=email,
        password_hash=get_password_hash(PASSWORD),
        full_name=email.split("@")[0].title(),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    return user


def principal_for(user):
    return Principal.from_user(user)


def auth_headers(user):
    token = create_access_token(principal_for(user).token_claims())
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def acme(db):
    return make_tenant(db, "acme")


@pytest.fixture()
def globex(db):
    return make_tenant(db, "globex")


@pytest.fixture()
def acme_admin(db, acme):
    return make_user(db, acme, "admin@acme.com", role=UserRole.TENANT_ADMIN)


@pytest.fixture()
def acme_user(db, acme):
    return make_user(db, acme, "alice@acme.com")


@pytest.fixture()
def globex_admin(db, globex):
    return make_user(db, globex, "admin@globex.com", role=UserRole.TENANT_ADMIN)


@pytest.fixture()
def super_admin(db):
    return make_user(db, None, "root@platform.com", role=UserRole.SUPER_ADMIN)
