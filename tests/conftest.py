"""
Pytest fixtures for the test suite.

Engine tests build RuleSnapshots in memory. Data-layer and security tests use
an in-memory SQLite engine and a session that rolls back after each test, so
tests do not affect each other.
"""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from venue_authz.engine import Principal, Role


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from venue_authz.db.base import Base
    from venue_authz.models import authz  # noqa: F401  (register tables)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def manager():
    return Principal(user_id="u-manager", role=Role("manager", "MANAGER"), venue_ids=frozenset({"v-1", "v-2"}))


@pytest.fixture
def staff():
    return Principal(user_id="u-staff", role=Role("staff", "STAFF"), venue_ids=frozenset({"v-1"}))


@pytest.fixture
def admin():
    return Principal(user_id="u-admin", role=Role("admin", "admin"))
