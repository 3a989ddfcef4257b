"""Pydantic model for resolved pipeline settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from assetgraph.config.hierarchy import load_config_hierarchy
from assetgraph.types import BreakpointSet


class PipelineSettings(BaseModel):
    """Every knob the pipeline reads, after the config hierarchy is merged."""

    model_config = {"extra": "ignore"}

    max_concurrency: int | None = Field(default=None, ge=1)
    breakpoints: BreakpointSet = Field(default_factory=BreakpointSet)
    output_dir: Path = Path("assetgraph-out")
    cache_db_path: Path | None = None
    cache_disabled: bool = False
    quality: int = Field(default=80, ge=1, le=100)
    blur_width: int = Field(default=20, ge=1)
    task_timeout: float | None = Field(default=None, gt=0)
    fetch_timeout: float = Field(default=30.0, gt=0)
    fetch_retries: int = Field(default=3, ge=1)
    max_depth: int = Field(default=32, ge=0)
    extract_metadata: bool = False

    @field_validator("output_dir", "cache_db_path", mode="before")
    @classmethod
    def _expand_user(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Path(value).expanduser()
        return value

    @classmethod
    def load(cls, **overrides: Any) -> PipelineSettings:
        """Resolve settings from every config layer plus ``overrides``."""
        return cls(**load_config_hierarchy(**overrides))
