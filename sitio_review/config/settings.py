"""
Application-wide configuration via pydantic-settings.

All paths are resolved at load time to absolute Path objects.
Override any setting via environment variable prefixed with SITIO_REVIEW_
e.g., set SITIO_REVIEW_DB_ECHO=true to enable SQLAlchemy query logging.

The project root is the directory containing the sitio_review/ package.
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SITIO_REVIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application metadata ---
    app_name: str = "Sitio Submission Review Engine"
    app_version: str = "0.1.0"

    # --- Paths (resolved in model_post_init) ---
    project_root: Path = Path(__file__).resolve().parent.parent.parent

    # --- Database ---
    db_path: Optional[Path] = None    # resolved in model_post_init
    db_echo: bool = False             # set True to log all SQL queries

    # --- Logging ---
    log_level: str = "info"
    log_json: bool = False            # JSON lines instead of console rendering

    # --- Diff engine ---
    year_map_field: str = "yearlyData"
    # Top-level metadata fields never reported as differences or conflicts
    excluded_fields: frozenset[str] = frozenset(
        {"id", "createdAt", "updatedAt", "availableYears", "coding", "yearlyData"}
    )

    # --- Review workflow ---
    forbid_self_review: bool = True
    supersede_pending_on_submit: bool = False
    max_payload_bytes: int = 2 * 1024 * 1024   # serialized proposal size limit
    max_nesting_depth: int = 64                # deepest map/array nesting accepted in a proposal

    def model_post_init(self, __context) -> None:
        """Resolve all None paths to absolute paths derived from project_root."""
        if self.db_path is None:
            object.__setattr__(self, "db_path", self.project_root / "sitio_review.db")


# Module-level singleton. Import this object; never instantiate Settings directly.
settings = Settings()
