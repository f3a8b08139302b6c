from datetime import datetime

from sqlalchemy import Column, DateTime, String

from ..database import Base


class MigrationRecord(Base):
    """Ledger entry for a migration that has been applied."""

    __tablename__ = "__Migrations"

    migration_id = Column("MigrationId", String(150), primary_key=True)
    applied_at = Column("AppliedAt", DateTime, default=datetime.utcnow, nullable=False)
