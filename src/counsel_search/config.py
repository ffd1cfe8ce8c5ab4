"""Centralized configuration for counsel-search using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    All environment variables are validated at startup with proper types.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",  # Ignore extra env vars not defined in model
    )

    # Storage locations
    database_path: Path = Field(default=Path("counsel_db.sqlite"), description="SQLite message database")
    index_path: Path = Field(default=Path("searchIndex.json"), description="Published search index file")
    synonyms_path: Path | None = Field(
        default=None, description="Optional JSON thesaurus; the built-in medical thesaurus is used when unset"
    )

    # Index builder
    index_batch_size: int = Field(default=1000, ge=1, description="Messages read per corpus batch during a rebuild")

    # Query engine
    max_results: int = Field(default=100, ge=1, description="Results kept after ranking")
    expansion_threshold: int = Field(
        default=20, ge=0, description="Synonym expansion runs when exact matches are fewer than this"
    )
    max_edit_distance: int = Field(default=2, ge=1, description="Largest edit distance accepted for corrections")
    max_corrections: int = Field(default=5, ge=1, description="Spelling suggestions kept per query term")
    correction_time_budget_ms: int = Field(
        default=250, ge=0, description="Per-request budget for spelling correction scans (0 disables the budget)"
    )

    # Context assembler
    context_radius: int = Field(default=2, ge=0, description="Neighbor messages shown on each side of a hit")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Metrics and tracing
    service_name: str = Field(
        default="counsel-search", description="service.name resource attribute for metrics and traces"
    )

    @model_validator(mode="after")
    def _check_paths(self) -> "Settings":
        if self.index_path.is_dir():
            raise ValueError(f"INDEX_PATH must point to a file, got directory {self.index_path}")
        return self

    @property
    def correction_time_budget_seconds(self) -> float | None:
        """Time budget as seconds, or None when disabled."""
        if self.correction_time_budget_ms == 0:
            return None
        return self.correction_time_budget_ms / 1000.0
