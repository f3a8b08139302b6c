"""Ordered, idempotent schema migrations tracked in a ledger table.

Each migration is a :class:`Migration` value: a stable id used as the ledger
key and an ``apply`` callable receiving an open session. Ids of shipped
migrations must never change, otherwise the step is applied again.
"""

import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from prometheus_client import Counter
from sqlalchemy import Table, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .database import SessionFactory, SessionLocal
from .errors import MigrationError
from .models import MigrationRecord, Role, User, UserRole
from .repository import _handle_store_error


logger = logging.getLogger(__name__)

MIGRATION_APPLIED_COUNTER = Counter(
    "schema_migrations_applied_total", "Total schema migrations applied"
)
MIGRATION_FAILURE_COUNTER = Counter(
    "schema_migrations_failed_total", "Total schema migration failures"
)

LEDGER_TABLE = MigrationRecord.__table__.name


@dataclass(frozen=True)
class Migration:
    id: str
    description: str
    apply: Callable[[Session], None] = field(compare=False, repr=False)


def create_tables(*tables: Table) -> Callable[[Session], None]:
    """Effect that creates ``tables`` (and their indexes) if they are missing."""

    def effect(session: Session) -> None:
        bind = session.connection()
        for table in tables:
            table.create(bind=bind, checkfirst=True)

    return effect


def seed_roles(roles: Sequence[Dict[str, str]]) -> Callable[[Session], None]:
    """Effect that inserts the given roles, skipping names already present."""

    def effect(session: Session) -> None:
        existing = set(session.scalars(select(Role.name)).all())
        for role in roles:
            if role["name"] not in existing:
                session.add(Role(name=role["name"], description=role.get("description")))
        session.flush()

    return effect


DEFAULT_ROLES = (
    {"name": "User", "description": "Regular system user"},
    {"name": "Admin", "description": "System administrator with full access"},
)

MIGRATIONS = (
    Migration(
        "001_CreateUsersTable",
        "Create the Users table",
        create_tables(User.__table__),
    ),
    Migration(
        "002_CreateUserRolesTable",
        "Create the Roles and UserRoles tables",
        create_tables(Role.__table__, UserRole.__table__),
    ),
    Migration(
        "003_InsertDefaultRoles",
        "Seed the default User and Admin roles",
        seed_roles(DEFAULT_ROLES),
    ),
)

EXPECTED_TABLES = (
    User.__table__.name,
    Role.__table__.name,
    UserRole.__table__.name,
    LEDGER_TABLE,
)


@dataclass
class DatabaseStatus:
    """Read-only snapshot of the schema state."""

    reachable: bool
    tables: Dict[str, bool] = field(default_factory=dict)
    applied: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)
    error: str | None = None

    @property
    def up_to_date(self) -> bool:
        return self.reachable and all(self.tables.values()) and not self.pending


class MigrationEngine:
    """Applies pending migrations in declared order, at most once each."""

    def __init__(
        self,
        session_factory: SessionFactory = SessionLocal,
        migrations: Sequence[Migration] = MIGRATIONS,
    ):
        ids = [m.id for m in migrations]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate migration ids: {', '.join(duplicates)}")
        self.session_factory = session_factory
        self.migrations = tuple(migrations)

    def _ensure_ledger(self, session: Session) -> None:
        MigrationRecord.__table__.create(bind=session.connection(), checkfirst=True)
        session.commit()

    def migrate(self) -> List[str]:
        """Apply every pending migration and return the ids applied by this run.

        Stops at the first failing step, which is neither recorded nor
        followed by later steps, and raises :class:`MigrationError`.
        """
        logger.info("starting database migrations")
        session: Session = self.session_factory()
        try:
            self._ensure_ledger(session)
            applied: List[str] = []
            for migration in self.migrations:
                if session.get(MigrationRecord, migration.id) is not None:
                    logger.debug("migration %s already applied", migration.id)
                    continue

                logger.info("applying migration %s", migration.id)
                try:
                    migration.apply(session)
                    session.add(MigrationRecord(migration_id=migration.id))
                    session.commit()
                except Exception as exc:
                    session.rollback()
                    MIGRATION_FAILURE_COUNTER.inc()
                    logger.exception("migration %s failed", migration.id)
                    raise MigrationError(migration.id, str(exc)) from exc

                MIGRATION_APPLIED_COUNTER.inc()
                applied.append(migration.id)

            logger.info("database migrations completed, %d applied", len(applied))
            return applied
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def _missing_sqlite_file(self, session: Session) -> Path | None:
        """Path of a file-backed SQLite database that does not exist yet."""
        url = session.get_bind().url
        if url.get_backend_name() != "sqlite":
            return None
        database = url.database
        if not database or database == ":memory:" or database.startswith("file:"):
            return None
        path = Path(database)
        return None if path.exists() else path

    def check_status(self) -> DatabaseStatus:
        """Report which expected tables and migrations exist without writing."""
        session: Session = self.session_factory()
        try:
            # Connecting would create the SQLite file
            missing = self._missing_sqlite_file(session)
            if missing is not None:
                if not missing.parent.is_dir():
                    error = f"directory {missing.parent} does not exist"
                    logger.warning("database status check failed: %s", error)
                    return DatabaseStatus(reachable=False, error=error)
                return DatabaseStatus(
                    reachable=True,
                    tables={name: False for name in EXPECTED_TABLES},
                    pending=[m.id for m in self.migrations],
                )

            inspector = inspect(session.connection())
            tables = {name: inspector.has_table(name) for name in EXPECTED_TABLES}
            applied: List[str] = []
            if tables[LEDGER_TABLE]:
                applied = list(session.scalars(select(MigrationRecord.migration_id)).all())
            pending = [m.id for m in self.migrations if m.id not in applied]
            return DatabaseStatus(
                reachable=True,
                tables=tables,
                applied=[m.id for m in self.migrations if m.id in applied],
                pending=pending,
            )
        except SQLAlchemyError as exc:
            logger.warning("database status check failed: %s", exc)
            return DatabaseStatus(reachable=False, error=str(exc))
        finally:
            session.close()
