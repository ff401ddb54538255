"""Database engine and session management."""

import logging
from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import Settings

logger = logging.getLogger("ifrs_explorer")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Database:
    """Owns the connection pool shared by all requests.

    Created once when the application starts and disposed on shutdown.
    """

    def __init__(self, url: str, echo: bool = False, pool_size: int = 10, max_overflow: int = 5) -> None:
        if url.startswith("sqlite"):
            self.engine: Engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
        else:
            self.engine = create_engine(
                url,
                echo=echo,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
            )
        self.session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database connection pool disposed")


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a database session from the application's pool."""
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
