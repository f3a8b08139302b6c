from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite:///authconsole.db")
    min_username_length: int = Field(3, ge=1)
    min_password_length: int = Field(6, ge=1)
    # Argon2id cost parameters; memory is in KiB
    hash_time_cost: int = Field(3, ge=1)
    hash_memory_cost: int = Field(64 * 1024, ge=8)
    hash_parallelism: int = Field(4, ge=1)
    log_level: str = Field("INFO")
    log_sql: bool = Field(False)


settings = Settings()
