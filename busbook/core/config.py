"""Configuration settings for the booking workflow."""

from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with Pydantic validation."""

    # Environment settings
    environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Application log level"
    )

    backend: str = Field(
        default="supabase",
        description="Backend data service: supabase or sql"
    )

    # Supabase (PostgREST) backend settings
    supabase_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the Supabase project"
    )

    supabase_key: str = Field(
        default="",
        description="Supabase anon or service key sent as apikey and bearer token"
    )

    supabase_schema: str = Field(
        default="public",
        description="Postgres schema exposed through PostgREST"
    )

    backend_timeout_seconds: Optional[float] = Field(
        default=None,
        description="HTTP timeout for backend calls; None keeps the httpx default"
    )

    # SQL backend settings
    database_url: str = Field(
        default="sqlite+aiosqlite:///./busbook.db",
        description="Async SQLAlchemy URL for the SQL data service"
    )

    # Booking policy defaults
    policy_max_seats: int = Field(
        default=5,
        ge=1,
        description="Maximum seats (and passengers) in a single booking"
    )

    policy_fixed_fee: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        description="Fixed service fee added to every booking"
    )

    policy_cancellation_window_hours: Optional[float] = Field(
        default=24.0,
        ge=0,
        description="Minimum hours before departure for a cancellation; unset means unconditional"
    )

    policy_require_age: bool = Field(
        default=False,
        description="Whether passengers must provide an age"
    )

    policy_min_name_length: int = Field(
        default=3,
        ge=1,
        description="Minimum passenger name length"
    )

    policy_currency: str = Field(
        default="GHS",
        description="ISO 4217 currency code for prices"
    )

    policy_price_basis: str = Field(
        default="passengers",
        description="Count used for pricing: passengers or seats"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_environments = ["development", "staging", "production", "test"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level value."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        valid_backends = ["supabase", "sql"]
        if v.lower() not in valid_backends:
            raise ValueError(f"Backend must be one of: {valid_backends}")
        return v.lower()

    @field_validator("policy_price_basis")
    @classmethod
    def validate_price_basis(cls, v: str) -> str:
        valid_bases = ["passengers", "seats"]
        if v.lower() not in valid_bases:
            raise ValueError(f"Price basis must be one of: {valid_bases}")
        return v.lower()

    @field_validator("policy_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a three-letter ISO 4217 code")
        return v.upper()

    @property
    def debug(self) -> bool:
        """Return True if in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Return True if in production mode."""
        return self.environment == "production"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "BUSBOOK_",
    }


# Global settings instance
settings = Settings()
