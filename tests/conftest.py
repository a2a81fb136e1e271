import pytest
from datetime import datetime
from unittest.mock import Mock, MagicMock
from fastapi.testclient import TestClient

from main import app
from app.database import get_db
from app.auth.dependencies import get_current_user
from app.models.user import User, UserRole


@pytest.fixture
def mock_db():
    """Mock database session"""
    db = MagicMock()
    db.query.return_value = db
    db.filter.return_value = db
    db.join.return_value = db
    db.order_by.return_value = db
    db.first.return_value = None
    db.all.return_value = []
    db.count.return_value = 0
    return db


def make_user(id=1, email="user@test.com", role=UserRole.USER):
    user = Mock(spec=User)
    user.id = id
    user.email = email
    user.role = role
    user.password_hash = "$2b$12$test_hash"
    user.created_at = datetime(2024, 1, 1)
    return user


@pytest.fixture
def mock_user():
    """Mock registered customer"""
    return make_user(id=2, email="buyer@test.com", role=UserRole.USER)


@pytest.fixture
def mock_guest():
    """Mock guest session"""
    guest = make_user(id=4, email="guest_0123456789abcdef@guest.telegramsecrets.local", role=UserRole.GUEST)
    guest.password_hash = None
    return guest


@pytest.fixture
def mock_admin():
    """Mock admin user"""
    return make_user(id=3, email="admin@test.com", role=UserRole.ADMIN)


@pytest.fixture
def client_with_user(mock_db, mock_user):
    """TestClient with customer auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_user
    client = TestClient(app)
    yield client, mock_db, mock_user
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_guest(mock_db, mock_guest):
    """TestClient with guest auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_guest
    client = TestClient(app)
    yield client, mock_db, mock_guest
    app.dependency_overrides.clear()


@pytest.fixture
def client_with_admin(mock_db, mock_admin):
    """TestClient with admin auth and mocked DB"""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: mock_admin
    client = TestClient(app)
    yield client, mock_db, mock_admin
    app.dependency_overrides.clear()


@pytest.fixture
def unauthenticated_client(mock_db):
    """TestClient with mocked DB but no auth"""
    app.dependency_overrides[get_db] = lambda: mock_db
    client = TestClient(app)
    yield client, mock_db
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)
