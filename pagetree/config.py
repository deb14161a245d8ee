"""
PageTree CMS — Application Configuration
========================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or a .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before the app starts.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have working defaults for development. Attributes are
    grouped by concern.
    """

    # ── Remote Store ──────────────────────────────────────────────────────
    # What: Base URL of the hosted key-tree database (REST endpoint root)
    # Format: https://<project>.<region>.firebasedatabase.app
    store_url: str = Field(
        default="https://voice-noter-default-rtdb.europe-west1.firebasedatabase.app",
        description="Base URL of the remote document store",
    )

    # What: Optional credential appended as the `auth` query parameter
    # Empty string means unauthenticated access (rules must allow it)
    store_auth_token: str = Field(default="")

    # What: Per-call HTTP timeout against the store, in seconds
    store_timeout_seconds: float = Field(default=10.0, gt=0, le=300)

    # ── Retry Configuration ───────────────────────────────────────────────
    # What: Tenacity settings for store calls that fail at the transport level
    # Default of 1 attempt means a failed call is never retried
    store_retry_attempts: int = Field(default=1, ge=1, le=10)
    store_retry_min_wait: int = Field(default=1, ge=1, le=30)
    store_retry_max_wait: int = Field(default=10, ge=1, le=120)

    # ── Page Hierarchy ────────────────────────────────────────────────────
    # What: Upper bound on ancestors visited while building a breadcrumb trail
    breadcrumb_max_depth: int = Field(default=100, ge=1, le=10_000)

    # What: Behavior when a parent pointer references a page that does not exist
    # fail:     abort the render with a 500
    # truncate: keep the ancestors found so far
    breadcrumb_on_dangling: Literal["fail", "truncate"] = Field(default="fail")

    # What: Whether deleting a page also deletes its content node
    # Child pages are never deleted with their parent
    delete_cascade_content: bool = Field(default=False)

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
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

    @field_validator("store_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalizes the store URL so paths can be joined with a single '/'."""
        return v.rstrip("/")

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # STORE_URL and store_url both work
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Checks each required field and raises ValueError with guidance.
        """
        errors = []
        if not self.store_url:
            errors.append("STORE_URL is not set.")
        elif not self.store_url.startswith("https://"):
            errors.append(
                f"STORE_URL '{self.store_url}' is not an https URL. "
                "The hosted store only accepts TLS connections."
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance: imported throughout the application
settings = Settings()
