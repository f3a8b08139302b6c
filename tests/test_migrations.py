import pytest
from sqlalchemy import func, inspect, select

from authconsole.database import make_engine, make_session_factory
from authconsole.errors import MigrationError
from authconsole.migrations import (
    EXPECTED_TABLES,
    MIGRATIONS,
    Migration,
    MigrationEngine,
    create_tables,
)
from authconsole.models import MigrationRecord, Role, User


def _ledger(session_factory):
    with session_factory() as session:
        return list(session.scalars(select(MigrationRecord.migration_id)).all())


def test_status_on_empty_database(session_factory):
    status = MigrationEngine(session_factory).check_status()
    assert status.reachable is True
    assert status.tables == {name: False for name in EXPECTED_TABLES}
    assert status.applied == []
    assert status.pending == [m.id for m in MIGRATIONS]
    assert status.up_to_date is False


def test_status_does_not_create_sqlite_file(session_factory, tmp_path):
    status = MigrationEngine(session_factory).check_status()
    assert status.reachable is True
    assert status.pending == [m.id for m in MIGRATIONS]
    assert not (tmp_path / "test.db").exists()


def test_status_missing_directory_is_unreachable(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'missing' / 'test.db'}", echo=False)
    status = MigrationEngine(make_session_factory(engine)).check_status()
    assert status.reachable is False
    assert "does not exist" in status.error
    assert not (tmp_path / "missing").exists()
    engine.dispose()


def test_status_does_not_create_anything(session_factory, engine):
    # Existing but empty file goes through table inspection
    engine.connect().close()
    status = MigrationEngine(session_factory).check_status()
    assert status.tables == {name: False for name in EXPECTED_TABLES}
    assert inspect(engine).get_table_names() == []


def test_migrate_applies_all_in_order(session_factory, engine):
    applied = MigrationEngine(session_factory).migrate()
    assert applied == [
        "001_CreateUsersTable",
        "002_CreateUserRolesTable",
        "003_InsertDefaultRoles",
    ]
    assert set(EXPECTED_TABLES) <= set(inspect(engine).get_table_names())

    status = MigrationEngine(session_factory).check_status()
    assert status.up_to_date is True
    assert status.applied == applied


def test_migrate_twice_is_a_noop(session_factory):
    engine = MigrationEngine(session_factory)
    engine.migrate()
    assert engine.migrate() == []

    ledger = _ledger(session_factory)
    assert sorted(ledger) == sorted(m.id for m in MIGRATIONS)
    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(Role)) == 2


def test_failing_step_stops_the_run(session_factory, engine):
    calls = []

    def boom(session):
        calls.append("boom")
        raise RuntimeError("syntax error near TABLE")

    def never(session):
        calls.append("never")

    migrations = [
        MIGRATIONS[0],
        Migration("002_Broken", "always fails", boom),
        Migration("003_After", "must not run", never),
    ]

    with pytest.raises(MigrationError) as excinfo:
        MigrationEngine(session_factory, migrations).migrate()

    assert excinfo.value.migration_id == "002_Broken"
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert calls == ["boom"]
    assert _ledger(session_factory) == ["001_CreateUsersTable"]
    assert inspect(engine).has_table(User.__table__.name)


def test_rerun_after_fix_resumes_from_failed_step(session_factory):
    broken = [MIGRATIONS[0], Migration("002_Roles", "fails", lambda s: 1 / 0)]
    with pytest.raises(MigrationError):
        MigrationEngine(session_factory, broken).migrate()

    fixed = [MIGRATIONS[0], Migration("002_Roles", "roles", create_tables(Role.__table__))]
    assert MigrationEngine(session_factory, fixed).migrate() == ["002_Roles"]


def test_step_reapplied_when_ledger_is_missing_is_harmless(session_factory):
    MigrationEngine(session_factory).migrate()
    with session_factory() as session:
        session.query(MigrationRecord).delete()
        session.commit()

    # Create-if-missing and insert-if-missing effects tolerate a re-run
    assert len(MigrationEngine(session_factory).migrate()) == len(MIGRATIONS)
    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(Role)) == 2


def test_duplicate_migration_ids_rejected(session_factory):
    with pytest.raises(ValueError, match="001_CreateUsersTable"):
        MigrationEngine(session_factory, [MIGRATIONS[0], MIGRATIONS[0]])
