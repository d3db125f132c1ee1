"""
Shared fixtures: in-memory SQLite ledger, member factory and an API client
wired to the same database.
"""
import os
import sys
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dues_engine.database import Base, get_db
from dues_engine.models.db_models import UserDB, UserRole, SubscriptionStatus
from dues_engine.auth import create_access_token


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Factory for committed members."""
    def _make_user(
        email=None,
        pricing_tier="20.00",
        created_at=datetime(2024, 6, 1),
        role=UserRole.USER.value,
        subscription_status=SubscriptionStatus.ACTIVE,
        **kwargs,
    ):
        user = UserDB(
            id=str(uuid4()),
            email=email or f"{uuid4().hex[:8]}@example.org",
            pricing_tier=Decimal(pricing_tier),
            created_at=created_at,
            role=role,
            subscription_status=subscription_status,
            **kwargs,
        )
        db.add(user)
        db.commit()
        return user
    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user(
        email="admin@example.org",
        role=UserRole.ADMIN.value,
        subscription_status=SubscriptionStatus.INACTIVE,
        created_at=datetime(2024, 1, 1),
    )


@pytest.fixture
def client(session_factory):
    """API client whose get_db dependency reads the test database."""
    from fastapi.testclient import TestClient
    from dues_engine.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer header for a member, as the identity provider would issue it."""
    def _auth_headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
    return _auth_headers
