from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from .errors import WalletConfigurationError

HOME_ENV = "CROWNSK_WALLET_HOME"
PASSWORD_ENV = "CROWNSK_WALLET_PASSWORD"
MIN_PASSWORD_LENGTH_ENV = "CROWNSK_MIN_PASSWORD_LENGTH"
WIPE_PASSES_ENV = "CROWNSK_WIPE_PASSES"
LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_HOME = Path("~/.thecrownsk")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class WalletSettings(BaseModel):
    """Resolved configuration for the local wallet vault."""

    home: Path = Field(default=DEFAULT_HOME, description="Vault directory (owner-only)")
    min_password_length: int = Field(default=8, ge=8)
    wipe_passes: int = Field(default=3, ge=1, le=35)
    log_level: str = Field(default="INFO")

    @field_validator("home")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return Path(os.path.expanduser(str(value)))

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level == "WARN":
            level = "WARNING"
        if level not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @classmethod
    def load(cls, home: Optional[str] = None) -> "WalletSettings":
        """Load settings from the environment (and `.env`), with defaults."""
        load_dotenv()

        raw = {
            "home": home or os.getenv(HOME_ENV) or cls.model_fields["home"].default,
            "min_password_length": os.getenv(MIN_PASSWORD_LENGTH_ENV, cls.model_fields["min_password_length"].default),
            "wipe_passes": os.getenv(WIPE_PASSES_ENV, cls.model_fields["wipe_passes"].default),
            "log_level": os.getenv(LOG_LEVEL_ENV, cls.model_fields["log_level"].default),
        }
        try:
            return cls(**raw)
        except PydanticValidationError as exc:
            fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
            raise WalletConfigurationError(f"Invalid wallet configuration ({fields}): {exc}") from exc
