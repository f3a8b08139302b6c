"""Service layer for accounts, sessions and role associations."""

import logging
from datetime import datetime
from typing import List

from argon2 import PasswordHasher
from prometheus_client import Counter
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import SessionFactory, SessionLocal
from .errors import InvalidInputError
from .models import Role, User, UserRole
from .repository import Repository, _handle_store_error
from .security import build_hasher, check_credentials_policy, verify_password


logger = logging.getLogger(__name__)

# Prometheus counters for key account events
REGISTRATION_COUNTER = Counter(
    "user_registrations_total", "Registration attempts by outcome", ["outcome"]
)
LOGIN_COUNTER = Counter("user_logins_total", "Login attempts by outcome", ["outcome"])
LOGOUT_COUNTER = Counter("user_logouts_total", "Total successful logouts")
USER_DELETE_COUNTER = Counter("user_deletions_total", "Total users deleted")
ROLE_ASSIGN_COUNTER = Counter("role_assignments_total", "Total roles assigned")


class AuthService:
    """Registers accounts, checks credentials and tracks the logged-in flag.

    Session state lives only on ``User.is_logged``. Concurrent login and
    logout for the same account are not coordinated here: the last write to
    reach the store wins.
    """

    def __init__(
        self,
        session_factory: SessionFactory = SessionLocal,
        hasher: PasswordHasher | None = None,
        min_username_length: int | None = None,
        min_password_length: int | None = None,
    ):
        self.session_factory = session_factory
        self.users: Repository[User] = Repository(User, session_factory)
        self.hasher = hasher or build_hasher()
        self.min_username_length = min_username_length or settings.min_username_length
        self.min_password_length = min_password_length or settings.min_password_length
        # Verified against when the username is unknown so both failures cost the same
        self._dummy_hash = self.hasher.hash("authconsole-dummy-password")

    def register(self, username: str, password: str) -> bool:
        """Create an account; False if the username is already taken."""
        check_credentials_policy(
            username, password, self.min_username_length, self.min_password_length
        )
        password_hash = self.hasher.hash(password)

        session: Session = self.session_factory()
        try:
            exists = session.scalar(select(User.id).where(User.username == username))
            if exists is not None:
                REGISTRATION_COUNTER.labels(outcome="conflict").inc()
                logger.info("register rejected, username %s already exists", username)
                return False
            session.add(User(username=username, password_hash=password_hash, is_logged=False))
            session.commit()
            REGISTRATION_COUNTER.labels(outcome="created").inc()
            logger.info("registered user %s", username)
            return True
        except IntegrityError:
            session.rollback()
            REGISTRATION_COUNTER.labels(outcome="conflict").inc()
            logger.info("register rejected by store for username %s", username)
            return False
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def get_by_username(self, username: str) -> User | None:
        session: Session = self.session_factory()
        try:
            return session.scalars(select(User).where(User.username == username)).first()
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def get_by_id(self, user_id: int) -> User | None:
        return self.users.get_by_id(user_id)

    def list_users(self) -> List[User]:
        return self.users.get_all()

    def validate_credentials(self, username: str, password: str) -> User | None:
        """Return the user if ``password`` matches, otherwise ``None``.

        Unknown usernames and wrong passwords are indistinguishable: both
        run one hash verification and both return ``None``.
        """
        if not username or not password:
            raise InvalidInputError("username and password are required")

        user = self.get_by_username(username)
        if user is None:
            verify_password(self.hasher, self._dummy_hash, password)
            return None
        if not verify_password(self.hasher, user.password_hash, password):
            return None
        return user

    def login(self, username: str, password: str) -> User | None:
        user = self.validate_credentials(username, password)
        if user is None:
            LOGIN_COUNTER.labels(outcome="rejected").inc()
            logger.warning("login rejected for %s", username)
            return None

        session: Session = self.session_factory()
        try:
            stored = session.get(User, user.id)
            if stored is None:
                # Deleted between verification and update
                LOGIN_COUNTER.labels(outcome="rejected").inc()
                return None
            stored.is_logged = True
            if self.hasher.check_needs_rehash(stored.password_hash):
                stored.password_hash = self.hasher.hash(password)
                logger.info("rehashed password for user %s", stored.id)
            session.commit()
            LOGIN_COUNTER.labels(outcome="success").inc()
            logger.info("user %s logged in", stored.id)
            return stored
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def logout(self, user_id: int) -> bool:
        """Clear the logged-in flag; False if the user does not exist.

        Only ``IsLogged`` is written so a concurrent rehash on login is kept.
        """
        session: Session = self.session_factory()
        try:
            result = session.execute(
                update(User)
                .where(User.id == user_id)
                .values(is_logged=False, updated_at=datetime.utcnow())
            )
            session.commit()
            if result.rowcount == 0:
                return False
            LOGOUT_COUNTER.inc()
            logger.info("user %s logged out", user_id)
            return True
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def delete(self, user_id: int) -> bool:
        """Remove a user together with all of its role associations.

        Both deletes run in one transaction; on failure nothing is removed.
        """
        session: Session = self.session_factory()
        try:
            session.execute(delete(UserRole).where(UserRole.user_id == user_id))
            result = session.execute(delete(User).where(User.id == user_id))
            session.commit()
            removed = result.rowcount > 0
            if removed:
                USER_DELETE_COUNTER.inc()
                logger.info("deleted user %s", user_id)
            return removed
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()


class RoleService:
    """Role lookups and user/role association management."""

    def __init__(self, session_factory: SessionFactory = SessionLocal):
        self.session_factory = session_factory
        self.roles: Repository[Role] = Repository(Role, session_factory)

    def get_role_by_name(self, name: str) -> Role | None:
        session: Session = self.session_factory()
        try:
            return session.scalars(select(Role).where(Role.name == name)).first()
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def roles_for_user(self, user_id: int) -> List[Role]:
        session: Session = self.session_factory()
        try:
            stmt = (
                select(Role)
                .join(UserRole, UserRole.role_id == Role.id)
                .where(UserRole.user_id == user_id)
                .order_by(Role.id)
            )
            return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def assignments_for_role(self, role_id: int) -> List[UserRole]:
        session: Session = self.session_factory()
        try:
            stmt = select(UserRole).where(UserRole.role_id == role_id).order_by(UserRole.id)
            return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def assign_role(self, user_id: int, role_id: int) -> bool:
        """Associate a role with a user; False if the pair already exists."""
        session: Session = self.session_factory()
        try:
            existing = session.scalar(
                select(UserRole.id).where(
                    UserRole.user_id == user_id, UserRole.role_id == role_id
                )
            )
            if existing is not None:
                logger.info("user %s already has role %s", user_id, role_id)
                return False
            session.add(UserRole(user_id=user_id, role_id=role_id))
            session.commit()
            ROLE_ASSIGN_COUNTER.inc()
            logger.info("assigned role %s to user %s", role_id, user_id)
            return True
        except IntegrityError:
            # Unknown user or role
            session.rollback()
            logger.info("store rejected role %s for user %s", role_id, user_id)
            return False
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()

    def remove_role(self, user_id: int, role_id: int) -> bool:
        session: Session = self.session_factory()
        try:
            result = session.execute(
                delete(UserRole).where(
                    UserRole.user_id == user_id, UserRole.role_id == role_id
                )
            )
            session.commit()
            removed = result.rowcount > 0
            if removed:
                logger.info("removed role %s from user %s", role_id, user_id)
            return removed
        except SQLAlchemyError as exc:
            _handle_store_error(session, exc)
        finally:
            session.close()
