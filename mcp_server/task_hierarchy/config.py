"""Configuration for the task hierarchy tools.

Stored as JSON in ~/.task_hierarchy/config.json; environment variables
override individual fields.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .task_node import TickStride

CONFIG_ENV = "TASK_HIERARCHY_CONFIG"
DB_ENV = "TASK_HIERARCHY_DB"
LOG_LEVEL_ENV = "TASK_HIERARCHY_LOG_LEVEL"


class EngineConfig(BaseModel):
    """User-level settings shared by the CLI and the MCP server."""

    db_path: Path = Field(default=Path("tasks.db"), description="SQLite database path")
    tick_stride: TickStride = Field(default=TickStride.WEEK, description="Gantt time scale spacing")
    log_level: str = Field(default="INFO", description="Logging level name")
    default_project: Optional[str] = Field(None, description="Project used when none is given")


def get_config_path() -> Path:
    """Location of the config file."""
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override)
    return Path.home() / ".task_hierarchy" / "config.json"


def load_config() -> EngineConfig:
    """Load config from disk, falling back to defaults, then apply env overrides."""
    config = EngineConfig()
    config_file = get_config_path()
    if config_file.exists():
        try:
            data = json.loads(config_file.read_text(encoding="utf-8"))
            config = EngineConfig(**data)
        except (json.JSONDecodeError, ValueError, TypeError):
            logging.getLogger(__name__).warning("Ignoring unreadable config file %s", config_file)

    overrides = {}
    if os.environ.get(DB_ENV):
        overrides["db_path"] = Path(os.environ[DB_ENV])
    if os.environ.get(LOG_LEVEL_ENV):
        overrides["log_level"] = os.environ[LOG_LEVEL_ENV].upper()
    if overrides:
        config = config.model_copy(update=overrides)
    return config


def save_config(config: EngineConfig) -> Path:
    """Write config back to disk."""
    config_file = get_config_path()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(
        json.dumps(config.model_dump(mode="json"), indent=2),
        encoding="utf-8",
    )
    return config_file


def configure_logging(config: EngineConfig) -> None:
    """Set up root logging at the configured level."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
