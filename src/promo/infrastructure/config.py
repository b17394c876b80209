"""Runtime settings.

Loaded from ``PROMO_*`` environment variables or a ``.env`` file.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pydantic
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from promo.domain.exceptions import ValidationError

# When installed in editable mode the project root is the repo root.
_DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_prefix="PROMO_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    data_dir: Path = _DEFAULT_DATA_DIR
    reservation_ttl_seconds: float = Field(default=900.0, gt=0)
    checkout_timeout_seconds: float = Field(default=30.0, gt=0)
    default_currency: str = "USD"

    @field_validator("default_currency")
    @classmethod
    def _iso_code(cls, value: str) -> str:
        value = value.strip().upper()
        if len(value) != 3 or not value.isalpha():
            raise ValueError(f"must be a 3-letter ISO code, got {value!r}")
        return value

    @property
    def reservation_ttl(self) -> timedelta:
        return timedelta(seconds=self.reservation_ttl_seconds)

    @classmethod
    def from_env(cls) -> Settings:
        """Read the environment, raising ValidationError on bad values."""
        try:
            return cls()
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid PROMO_* settings: {exc}") from exc
