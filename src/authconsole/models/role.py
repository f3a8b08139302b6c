from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from ..database import Base


class Role(Base):
    """A named role that can be associated with users."""

    __tablename__ = "Roles"

    id = Column("Id", Integer, primary_key=True)
    name = Column("Name", String(50), unique=True, nullable=False)
    description = Column("Description", Text)

    def __repr__(self) -> str:
        return f"<Role id={self.id} name={self.name!r}>"


class UserRole(Base):
    """Association row linking one user to one role."""

    __tablename__ = "UserRoles"

    id = Column("Id", Integer, primary_key=True)
    user_id = Column(
        "UserId",
        Integer,
        ForeignKey("Users.Id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    role_id = Column(
        "RoleId",
        Integer,
        ForeignKey("Roles.Id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    assigned_at = Column("AssignedAt", DateTime, default=datetime.utcnow, nullable=False)
