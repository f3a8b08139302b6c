import pytest
from argon2 import PasswordHasher

from authconsole.commands import CommandProcessor
from authconsole.database import make_engine, make_session_factory
from authconsole.migrations import MigrationEngine
from authconsole.services import AuthService, RoleService


@pytest.fixture
def engine(tmp_path):
    """Provide an isolated SQLite database file for each test."""
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}", echo=False)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def migrated(session_factory):
    MigrationEngine(session_factory).migrate()
    return session_factory


@pytest.fixture
def hasher():
    # Minimum Argon2 cost keeps the suite fast
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def auth(migrated, hasher):
    return AuthService(migrated, hasher=hasher, min_username_length=3, min_password_length=6)


@pytest.fixture
def roles(migrated):
    return RoleService(migrated)


@pytest.fixture
def processor(auth, roles, migrated):
    return CommandProcessor(auth, roles, MigrationEngine(migrated))
