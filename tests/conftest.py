"""Pytest configuration and fixtures."""

import os

# Cheap hashes for tests; must be set before app.config is imported.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
# Run with the default (redacting) environment.
os.environ.pop("APP_ENV", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.models.password_reset import PasswordResetToken  # noqa: F401
from app.models.user import User  # noqa: F401
from app.services.auth import AuthService

TEST_PASSWORD = "Password1!"

ACCOUNTS = [
    (1, "John Smith", "Savings", 1200.0, 1, "Retail"),
    (2, "Jane Doe", "Current", 50.5, 0, "Corporate"),
    (3, "Anna Smithers", "Savings", 310.0, 1, "Retail"),
    (4, "Bob SMITH", "Loan", -800.0, 0, "Corporate"),
    (5, "Carl Jones", None, 0.0, 1, "Retail"),
]


def _attach_report_schema(dbapi_connection, connection_record):
    # SQLite has no schemas; an attached database plays the part of "dbo".
    dbapi_connection.execute("ATTACH DATABASE ':memory:' AS dbo")


def _create_report_tables(session: Session) -> None:
    session.execute(
        text(
            'CREATE TABLE dbo.accounts ('
            "id INTEGER PRIMARY KEY, "
            "name VARCHAR(100) NOT NULL, "
            "category TEXT, "
            "balance REAL, "
            '"account type" BOOLEAN, '
            '"account typeDesc" VARCHAR(50))'
        )
    )
    session.execute(text("CREATE TABLE dbo.ifrs_trial_balance (account_code INTEGER, amount REAL)"))
    session.execute(text("CREATE TABLE dbo.only_hidden (\"Account Type\" BOOLEAN)"))
    session.execute(text("CREATE VIEW dbo.retail_accounts AS SELECT id, name FROM accounts WHERE category IS NOT NULL"))
    for row in ACCOUNTS:
        session.execute(
            text(
                'INSERT INTO dbo.accounts (id, name, category, balance, "account type", "account typeDesc") '
                "VALUES (:id, :name, :category, :balance, :flag, :flag_desc)"
            ),
            dict(zip(("id", "name", "category", "balance", "flag", "flag_desc"), row)),
        )
    session.commit()


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database with an attached report schema."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _attach_report_schema)
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    _create_report_tables(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(name="client")
def client_fixture(db_session: Session):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from app.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session):
    """Create a test user and return its details with a valid token."""
    from app.services.jwt import get_jwt_service

    auth_service = AuthService()
    result = auth_service.register(db_session, "test@example.com", TEST_PASSWORD, "Test", "User")

    token = get_jwt_service().create_token(user_id=result.user.id, email=result.user.email)

    return {
        "user_id": result.user.id,
        "email": result.user.email,
        "token": token,
        "headers": {"Authorization": f"Bearer {token}"},
    }
