"""
Bird League Backend — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before app starts.

Storage layout (defaults):
    data/
    ├── db.json                 ← primary document (members, schedule, ...)
    └── backups/
        ├── db-2026-10-19T12-00-00-000001Z.json
        └── ...                 ← at most `max_backups` files
    submissions/
    └── week-3/
        └── Trevor___Katie/
            └── 9f0c...e1.jpg   ← attachment written by AttachmentStorage
"""

from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Production deployments MUST set ADMIN_SECRET, otherwise every admin
    endpoint answers 401.
    """

    # ── Document Store ────────────────────────────────────────────────────
    # What: Directory holding db.json and the backups/ folder
    # Hosted volumes export RAILWAY_VOLUME_MOUNT_PATH; DATA_DIR also works
    data_dir: str = Field(
        default="./data",
        validation_alias=AliasChoices("data_dir", "railway_volume_mount_path"),
        description="Directory containing the primary store file and backups",
    )
    db_filename: str = Field(default="db.json")
    backup_dirname: str = Field(default="backups")

    # What: Retention count for automatic backups (oldest pruned first)
    max_backups: int = Field(default=30, ge=1, le=1000)

    # What: Bundled db.json copied into an empty data_dir on startup
    seed_db_path: Optional[str] = Field(default=None)

    # ── Attachment Storage ────────────────────────────────────────────────
    submissions_root: str = Field(default="./submissions")

    # What: Maximum accepted request body for a submission, in bytes
    # Default: 50MB; the whole body is buffered before parsing
    max_upload_size: int = Field(default=52_428_800, ge=1_048_576, le=524_288_000)

    # ── Admin ─────────────────────────────────────────────────────────────
    # Empty means admin endpoints are disabled
    admin_secret: str = Field(default="")

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3001, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def validate_required_for_production(self) -> None:
        """
        Checks settings that the server can run without but should not.

        Raises ValueError listing every problem found.
        """
        errors = []
        if not self.admin_secret:
            errors.append(
                "ADMIN_SECRET is not set. Admin endpoints (backup, restore, "
                "week status, reset) will reject every request."
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


settings = Settings()
