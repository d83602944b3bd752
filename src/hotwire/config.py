"""Configuration for the watcher and reloader.

Settings are read from the [tool.hotwire] table of a pyproject.toml:

    [tool.hotwire]
    dirs = ["src"]
    cooldown_ms = 100
    no_reload = ["myapp.settings"]
"""

import logging
from pathlib import Path

import tomli
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class HotConfig(BaseModel):
    """Settings consumed by the watcher, debouncer and reloader."""

    dirs: list[str] = Field(default_factory=lambda: ["src"])
    cooldown_ms: float = Field(default=100, ge=0)
    poll_interval: float = Field(default=0.1, gt=0)
    no_reload: set[str] = Field(default_factory=set)
    no_unload: set[str] = Field(default_factory=set)

    @field_validator("dirs")
    @classmethod
    def validate_dirs(cls, v: list[str]) -> list[str]:
        """Require at least one directory."""
        if not v:
            raise ValueError("At least one directory must be configured")
        return v


def load_config(path: str | Path = "pyproject.toml") -> HotConfig:
    """Load settings from a pyproject.toml.

    Args:
        path: The pyproject.toml to read.

    Returns:
        The parsed settings, or defaults if the file or table is missing.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No config file at {path}, using defaults")
        return HotConfig()

    data = tomli.loads(path.read_text())
    table = data.get("tool", {}).get("hotwire", {})
    return HotConfig(**table)
