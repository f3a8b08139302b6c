"""Exceptions raised by the service layer and the migration engine."""


class AuthConsoleError(Exception):
    """Base class for every error surfaced to callers of the core."""


class InvalidInputError(AuthConsoleError, ValueError):
    """Input rejected before any store access."""


class StoreError(AuthConsoleError):
    """A statement or connection failed; the original error is ``__cause__``."""


class MigrationError(StoreError):
    """A migration step failed and was not recorded in the ledger."""

    def __init__(self, migration_id: str, message: str) -> None:
        super().__init__(f"migration {migration_id} failed: {message}")
        self.migration_id = migration_id
