"""Application configuration."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from school_sync.domain.categories import CATEGORY_KEYS, DEFAULT_LICENSE_FEES

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_key: str
    schools_table: str = "schools"
    messages_table: str = "messages"
    message_window_size: int = Field(default=100, gt=0)
    license_fees: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_LICENSE_FEES)
    )
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def fee_table(self) -> dict[str, float]:
        """Return the fee table, checked against the category set."""
        missing = [key for key in CATEGORY_KEYS if key not in self.license_fees]
        if missing:
            raise ValueError(f"License fees missing for: {', '.join(missing)}")
        unknown = [key for key in self.license_fees if key not in CATEGORY_KEYS]
        if unknown:
            raise ValueError(
                f"License fees for unknown categories: {', '.join(unknown)}"
            )
        return dict(self.license_fees)
