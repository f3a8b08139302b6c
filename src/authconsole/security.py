"""Password hashing and credential policy checks."""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from .config import settings
from .errors import InvalidInputError
from .models import User


def build_hasher(
    time_cost: int | None = None,
    memory_cost: int | None = None,
    parallelism: int | None = None,
) -> PasswordHasher:
    """Return an Argon2id hasher using the configured cost parameters."""
    return PasswordHasher(
        time_cost=time_cost or settings.hash_time_cost,
        memory_cost=memory_cost or settings.hash_memory_cost,
        parallelism=parallelism or settings.hash_parallelism,
    )


def verify_password(hasher: PasswordHasher, password_hash: str, password: str) -> bool:
    try:
        return hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


MAX_USERNAME_LENGTH = User.username.type.length


def check_credentials_policy(
    username: str,
    password: str,
    min_username_length: int,
    min_password_length: int,
    max_username_length: int = MAX_USERNAME_LENGTH,
) -> None:
    """Raise :class:`InvalidInputError` if the pair cannot be registered."""
    if not username or not username.strip():
        raise InvalidInputError("username is required")
    if username != username.strip():
        raise InvalidInputError("username must not start or end with whitespace")
    if len(username) < min_username_length:
        raise InvalidInputError(
            f"username must be at least {min_username_length} characters"
        )
    if len(username) > max_username_length:
        raise InvalidInputError(
            f"username must be at most {max_username_length} characters"
        )
    if not password:
        raise InvalidInputError("password is required")
    if len(password) < min_password_length:
        raise InvalidInputError(
            f"password must be at least {min_password_length} characters"
        )
