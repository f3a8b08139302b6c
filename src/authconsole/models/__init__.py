from .migration import MigrationRecord
from .role import Role, UserRole
from .user import User

__all__ = ["MigrationRecord", "Role", "User", "UserRole"]
