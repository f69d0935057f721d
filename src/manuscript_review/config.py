"""Configuration loading from the .manuscript-review/ directory."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

STATE_DIR_NAME = ".manuscript-review"


class ReviewConfig(BaseModel):
    storage: Literal["file", "memory"] = "file"
    error_excerpt_length: int = Field(default=40, ge=1)


def default_state_dir() -> Path:
    return Path.cwd() / STATE_DIR_NAME


def load_config(state_dir: str | Path | None = None) -> ReviewConfig:
    """Load config from <state_dir>/config.yaml."""
    base = Path(state_dir) if state_dir else default_state_dir()
    config_file = base / "config.yaml"

    if not config_file.exists():
        return ReviewConfig()

    raw = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    if not raw:
        return ReviewConfig()

    review = raw.get("review", {}) or {}

    return ReviewConfig(
        storage=raw.get("storage", "file"),
        error_excerpt_length=review.get("error_excerpt_length", 40),
    )
