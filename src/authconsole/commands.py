"""Command-level contract used by the interactive console.

Every command returns a :class:`CommandResult` and never raises for
validation, conflict, not-found or store failures, so the caller can keep
its loop running.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from .errors import AuthConsoleError, InvalidInputError, MigrationError
from .migrations import MigrationEngine
from .schemas import RoleOut, StatusOut, UserInfo, UserOut
from .services import AuthService, RoleService


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    ok: bool
    message: str
    value: Any = None


def _guarded(func: Callable[..., CommandResult]) -> Callable[..., CommandResult]:
    """Turn core errors raised by ``func`` into failed results."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> CommandResult:
        try:
            return func(*args, **kwargs)
        except InvalidInputError as exc:
            return CommandResult(False, f"Invalid input: {exc}")
        except MigrationError as exc:
            return CommandResult(False, str(exc))
        except AuthConsoleError as exc:
            logger.error("%s failed: %s", func.__name__, exc)
            return CommandResult(False, f"Database error: {exc}")

    return wrapper


class CommandProcessor:
    """Maps console commands onto the authentication and migration services."""

    def __init__(
        self,
        auth: AuthService,
        roles: RoleService,
        engine: MigrationEngine,
    ):
        self.auth = auth
        self.roles = roles
        self.engine = engine

    @_guarded
    def register(self, username: str, password: str) -> CommandResult:
        if self.auth.register(username, password):
            return CommandResult(True, f"User {username} registered")
        return CommandResult(False, f"Username {username} is already taken")

    @_guarded
    def login(self, username: str, password: str) -> CommandResult:
        user = self.auth.login(username, password)
        if user is None:
            return CommandResult(False, "Invalid username or password")
        return CommandResult(True, f"Welcome {user.username}", UserOut.model_validate(user))

    @_guarded
    def logout(self, user_id: int) -> CommandResult:
        if self.auth.logout(user_id):
            return CommandResult(True, f"User {user_id} logged out")
        return CommandResult(False, f"User {user_id} not found")

    @_guarded
    def info(self, user_id: int) -> CommandResult:
        user = self.auth.get_by_id(user_id)
        if user is None:
            return CommandResult(False, f"User {user_id} not found")
        info = UserInfo.model_validate(user)
        info.roles = [RoleOut.model_validate(r) for r in self.roles.roles_for_user(user_id)]
        return CommandResult(True, f"User {user.username}", info)

    @_guarded
    def list(self) -> CommandResult:
        users = [UserOut.model_validate(u) for u in self.auth.list_users()]
        return CommandResult(True, f"{len(users)} user(s)", users)

    @_guarded
    def delete(self, user_id: int) -> CommandResult:
        if self.auth.delete(user_id):
            return CommandResult(True, f"User {user_id} deleted")
        return CommandResult(False, f"User {user_id} not found")

    @_guarded
    def roles_for(self, user_id: int) -> CommandResult:
        roles = [RoleOut.model_validate(r) for r in self.roles.roles_for_user(user_id)]
        return CommandResult(True, f"{len(roles)} role(s)", roles)

    @_guarded
    def assign(self, user_id: int, role_id: int) -> CommandResult:
        if self.roles.assign_role(user_id, role_id):
            return CommandResult(True, f"Role {role_id} assigned to user {user_id}")
        return CommandResult(False, f"Role {role_id} not assigned to user {user_id}")

    @_guarded
    def unassign(self, user_id: int, role_id: int) -> CommandResult:
        if self.roles.remove_role(user_id, role_id):
            return CommandResult(True, f"Role {role_id} removed from user {user_id}")
        return CommandResult(False, f"User {user_id} does not have role {role_id}")

    @_guarded
    def migrate(self) -> CommandResult:
        applied = self.engine.migrate()
        if not applied:
            return CommandResult(True, "Database is up to date", applied)
        return CommandResult(True, f"Applied {len(applied)} migration(s)", applied)

    def db_status(self) -> CommandResult:
        status = self.engine.check_status()
        out = StatusOut(
            reachable=status.reachable,
            tables=status.tables,
            applied=status.applied,
            pending=status.pending,
            error=status.error,
        )
        if not status.reachable:
            return CommandResult(False, f"Database connection failed: {status.error}", out)
        return CommandResult(True, "Database status", out)
