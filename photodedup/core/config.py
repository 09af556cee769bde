from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, PositiveFloat, PositiveInt, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_MATCH_MODES = {"set", "multiset"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PHOTODEDUP_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "photodedup"
    environment: str = "production"
    log_level: str = "INFO"

    dry_run: bool = True
    allow_real_delete: bool = False

    state_root: Path = Field(default=Path("/state"))
    database_url: str | None = None

    hash_hex_length: PositiveInt = 64

    pairwise_max_groups: PositiveInt = 10000
    pairwise_timeout_seconds: PositiveFloat = 30.0
    pairwise_include_nested: bool = False
    analysis_workers: PositiveInt = 2
    complete_duplicate_match: str = "set"

    default_page_size: PositiveInt = 100
    max_page_size: PositiveInt = 1000

    @field_validator("state_root", mode="before")
    @classmethod
    def _normalize_path(cls, value: str | Path) -> Path:
        raw = str(value)
        if "~" in raw:
            raise ValueError("Home expansion syntax is not allowed in paths")
        if "$" in raw:
            raise ValueError("Environment variable syntax is not allowed in paths")
        path = Path(raw)
        if not path.is_absolute():
            raise ValueError("Path settings must be absolute")
        return path

    @model_validator(mode="after")
    def _validate_runtime_constraints(self) -> "Settings":
        self.state_root = self.state_root.resolve(strict=False)
        self.state_root.mkdir(parents=True, exist_ok=True)

        if self.allow_real_delete and self.dry_run:
            raise ValueError("allow_real_delete cannot be true while dry_run is enabled")

        if self.max_page_size < self.default_page_size:
            raise ValueError("max_page_size must be greater than or equal to default_page_size")

        if self.hash_hex_length % 2 != 0:
            raise ValueError("hash_hex_length must be even")

        normalized_mode = self.complete_duplicate_match.lower().strip()
        if normalized_mode not in SUPPORTED_MATCH_MODES:
            raise ValueError(f"complete_duplicate_match must be one of {sorted(SUPPORTED_MATCH_MODES)}")
        self.complete_duplicate_match = normalized_mode

        self.log_level = self.log_level.upper().strip()
        return self

    @property
    def effective_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        db_path = self.state_root / "photodedup.sqlite3"
        return f"sqlite:///{db_path.as_posix()}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
