"""
Configuration management (SSOT).

This module defines ALL configuration for clarity-sync.
All config keys are defined here; no other module should invent config keys.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

STAGING_BACKENDS = ("memory", "sqlite")


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class FileMakerConfig:
    """FileMaker Data API configuration (billing source)."""

    base_url: str
    token: str
    database: str = "clarityData"
    # Layout holding the billable time records
    layout: str = "dapiRecords"
    # Field used for the date range find request
    date_field: str = "DateStart"
    page_size: int = 1000
    timeout_seconds: int = 30


@dataclass
class SupabaseConfig:
    """Supabase (PostgREST) configuration (relational store)."""

    url: str
    api_key: str
    schema: str = "public"
    timeout_seconds: int = 30


@dataclass
class SyncConfig:
    """Synchronization defaults."""

    # Organization whose customer_sales rows are mirrored
    organization_id: str | None = None
    # Delete customer_sales rows without a billing record (opt-in)
    delete_orphaned: bool = False
    # Where staged comparisons live: "memory" or "sqlite"
    staging_backend: str = "sqlite"
    # Session scope for staged comparisons
    session_id: str = "default"


@dataclass
class Config:
    """Application configuration (SSOT)."""

    filemaker: FileMakerConfig
    supabase: SupabaseConfig
    sync: SyncConfig = field(default_factory=SyncConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.filemaker.base_url:
            errors.append("filemaker.base_url is required")
        if not self.filemaker.database:
            errors.append("filemaker.database is required")
        if not self.filemaker.layout:
            errors.append("filemaker.layout is required")
        if self.filemaker.page_size <= 0:
            errors.append("filemaker.page_size must be positive")

        if not self.supabase.url:
            errors.append("supabase.url is required")
        if not self.supabase.api_key:
            errors.append("supabase.api_key is required")

        if self.sync.staging_backend not in STAGING_BACKENDS:
            errors.append(
                f"sync.staging_backend must be one of {', '.join(STAGING_BACKENDS)}"
            )

        return errors

    def ensure_valid(self) -> None:
        """Raise ConfigValidationError if validate() reports any problem."""
        errors = self.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name, "").lower()
    if value == "true":
        return True
    if value == "false":
        return False
    return default


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - FILEMAKER_URL
    - FILEMAKER_TOKEN
    - FILEMAKER_DATABASE
    - FILEMAKER_LAYOUT
    - SUPABASE_URL
    - SUPABASE_KEY
    - CLARITY_ORGANIZATION_ID
    - CLARITY_DELETE_ORPHANED (true/false)
    - CLARITY_STAGING_BACKEND (memory/sqlite)
    - CLARITY_SESSION_ID
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    fm_data = data.get("filemaker", {})
    page_size = fm_data.get("page_size", 1000)
    page_size_env = os.environ.get("FILEMAKER_PAGE_SIZE", "")
    if page_size_env:
        try:
            page_size = int(page_size_env)
        except ValueError:
            pass  # Keep configured value

    filemaker = FileMakerConfig(
        base_url=os.environ.get("FILEMAKER_URL", fm_data.get("base_url", "")),
        token=os.environ.get("FILEMAKER_TOKEN", fm_data.get("token", "")),
        database=os.environ.get("FILEMAKER_DATABASE", fm_data.get("database", "clarityData")),
        layout=os.environ.get("FILEMAKER_LAYOUT", fm_data.get("layout", "dapiRecords")),
        date_field=fm_data.get("date_field", "DateStart"),
        page_size=page_size,
        timeout_seconds=fm_data.get("timeout_seconds", 30),
    )

    sb_data = data.get("supabase", {})
    supabase = SupabaseConfig(
        url=os.environ.get("SUPABASE_URL", sb_data.get("url", "")),
        api_key=os.environ.get("SUPABASE_KEY", sb_data.get("api_key", "")),
        schema=sb_data.get("schema", "public"),
        timeout_seconds=sb_data.get("timeout_seconds", 30),
    )

    sync_data = data.get("sync", {})
    sync = SyncConfig(
        organization_id=os.environ.get(
            "CLARITY_ORGANIZATION_ID", sync_data.get("organization_id")
        ),
        delete_orphaned=_env_bool(
            "CLARITY_DELETE_ORPHANED", sync_data.get("delete_orphaned", False)
        ),
        staging_backend=os.environ.get(
            "CLARITY_STAGING_BACKEND", sync_data.get("staging_backend", "sqlite")
        ),
        session_id=os.environ.get("CLARITY_SESSION_ID", sync_data.get("session_id", "default")),
    )

    state_db = data.get("state_db_path", "data/state.db")

    return Config(
        filemaker=filemaker,
        supabase=supabase,
        sync=sync,
        state_db_path=Path(state_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# clarity-sync configuration
#
# Environment variables override these values (FILEMAKER_URL, FILEMAKER_TOKEN,
# SUPABASE_URL, SUPABASE_KEY, CLARITY_ORGANIZATION_ID, ...).

filemaker:
  base_url: "https://filemaker.example.com"   # Data API host
  token: "YOUR_FILEMAKER_TOKEN"
  database: "clarityData"
  layout: "dapiRecords"                        # Billable time records
  date_field: "DateStart"
  page_size: 1000

supabase:
  url: "https://your-project.supabase.co"
  api_key: "YOUR_SUPABASE_SERVICE_KEY"
  schema: "public"

sync:
  organization_id: null                  # Organization UUID
  delete_orphaned: false                 # Remove customer_sales rows with no billing record
  staging_backend: "sqlite"              # memory | sqlite
  session_id: "default"                  # Staged comparisons are scoped to this session

# SQLite file for the sqlite staging backend
state_db_path: "data/state.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
