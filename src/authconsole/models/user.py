from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, false

from ..database import Base


class User(Base):
    """SQLAlchemy model for registered accounts."""

    __tablename__ = "Users"

    id = Column("Id", Integer, primary_key=True)
    username = Column("UserName", String(100), unique=True, index=True, nullable=False)
    password_hash = Column("HashPassword", String(255), nullable=False)
    is_logged = Column(
        "IsLogged", Boolean, default=False, server_default=false(), nullable=False
    )
    created_at = Column("CreatedAt", DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        "UpdatedAt",
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} is_logged={self.is_logged}>"
