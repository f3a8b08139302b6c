"""Database setup shared by the services and the migration engine."""

from typing import Callable

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings

Base = declarative_base()

# Zero-argument callable handing back a fresh session; every service takes one
SessionFactory = Callable[[], Session]


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    """Create an engine for ``url`` (defaults to the configured database)."""
    url = url or settings.database_url
    engine = create_engine(
        url,
        future=True,
        echo=settings.log_sql if echo is None else echo,
        hide_parameters=True,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


engine = make_engine()
SessionLocal = make_session_factory(engine)
