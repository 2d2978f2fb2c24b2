from __future__ import annotations

from dataclasses import dataclass, field

from pydantic_settings import BaseSettings

from deep_research.errors import ConfigError
from deep_research.models.source_tiers import SourceTiers


class Settings(BaseSettings):
    # Model service
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-3.5-turbo"
    request_timeout_seconds: float = 60.0

    # Research limits
    max_subtasks: int = 5
    max_pages_per_task: int = 5
    max_chunks_per_doc: int = 12
    max_depth: int = 2
    skip_failed_pages: bool = True

    # Content acquisition
    fetch_timeout_seconds: float = 15.0
    source_tiers_path: str = ""  # JSON file overriding the built-in reputation tiers

    # Search provider
    search_provider: str = "duckduckgo"  # duckduckgo | tavily
    search_max_results: int = 10
    tavily_api_key: str = ""

    # Finding store
    findings_db_path: str = "research_memory.db"

    # App
    app_log_level: str = "WARNING"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Immutable per-run configuration handed to the orchestrator."""

    api_key: str
    model: str = "gpt-3.5-turbo"
    base_url: str = "https://api.openai.com/v1"
    max_subtasks: int = 5
    max_pages_per_task: int = 5
    max_depth: int = 2
    max_chunks_per_doc: int = 12
    skip_failed_pages: bool = True
    request_timeout_seconds: float = 60.0
    fetch_timeout_seconds: float = 15.0
    source_tiers: SourceTiers = field(default_factory=SourceTiers.default)

    def __post_init__(self) -> None:
        if not self.api_key.strip():
            raise ConfigError("Please set the OPENAI_API_KEY environment variable.")
        for name in ("max_subtasks", "max_pages_per_task", "max_chunks_per_doc"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be at least 1, got {getattr(self, name)}")
        if self.max_depth < 0:
            raise ConfigError(f"max_depth must be non-negative, got {self.max_depth}")

    @classmethod
    def from_settings(cls, source: Settings | None = None, **overrides) -> "RunConfig":
        """Resolve a RunConfig from environment settings plus CLI overrides."""
        source = source or settings
        tiers = (
            SourceTiers.load(source.source_tiers_path)
            if source.source_tiers_path.strip()
            else SourceTiers.default()
        )
        values = {
            "api_key": source.openai_api_key,
            "model": source.openai_model,
            "base_url": source.openai_base_url,
            "max_subtasks": source.max_subtasks,
            "max_pages_per_task": source.max_pages_per_task,
            "max_depth": source.max_depth,
            "max_chunks_per_doc": source.max_chunks_per_doc,
            "skip_failed_pages": source.skip_failed_pages,
            "request_timeout_seconds": source.request_timeout_seconds,
            "fetch_timeout_seconds": source.fetch_timeout_seconds,
            "source_tiers": tiers,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
