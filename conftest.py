"""
Fixtures compartilhadas dos testes

Os testes rodam contra SQLite em memória (uma conexão compartilhada);
as tabelas são recriadas a cada teste.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("APP_SECRET_STRING", "test-secret-key")

import pytest
from uuid import uuid4
from fastapi.testclient import TestClient

from app.main import app
from app.database.database import Base, SessionLocal, sync_engine
from app.modules.auth.utils import create_access_token
from app.modules.security.monitor import security_monitor
from app.modules.security.session import session_registry


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def reset_security_state():
    session_registry.clear()
    security_monitor.reset()
    yield
    session_registry.clear()
    security_monitor.reset()


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user_id():
    return uuid4()


def _auth_headers(user_id) -> dict:
    token = create_access_token({"sub": str(user_id), "email": f"{user_id}@example.com"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(user_id):
    return _auth_headers(user_id)


@pytest.fixture
def other_auth_headers():
    return _auth_headers(uuid4())


@pytest.fixture
def auth_headers_for():
    """Fábrica de cabeçalhos para um user_id qualquer"""
    return _auth_headers
