"""Board configuration loaded from YAML."""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from beadboard.utils.config import Config

MIN_SPLIT_PERCENT = 20
MAX_SPLIT_PERCENT = 80


class ConfigError(Exception):
    """Raised when the config file cannot be read or holds invalid values."""


class BoardConfig(BaseModel):
    """Settings for the dashboard. Every field can also be set from the CLI."""

    db_path: Path = Config.DEFAULT_DB_PATH
    refresh_interval: float = Field(default=3, ge=0)  # seconds, 0 disables polling
    page_size: int = Field(default=10, ge=1)
    show_closed: bool = False
    show_labels: bool = True
    split_percent: int = 40
    theme: int = Field(default=0, ge=0)
    log_file: Optional[Path] = None

    @field_validator("split_percent")
    @classmethod
    def _clamp_split(cls, value: int) -> int:
        return max(MIN_SPLIT_PERCENT, min(MAX_SPLIT_PERCENT, value))

    @classmethod
    def load(cls, path: Optional[Path] = None, **overrides: Any) -> "BoardConfig":
        """Read ``path`` (default ``~/.beadboard/config.yaml``) and apply overrides.

        A missing file means defaults. Overrides with a value of None are
        ignored so unset CLI options do not mask the file.
        """
        path = Path(path) if path is not None else Config.default_config_file()
        data: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path) as f:
                    loaded = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Could not read config {path}: {e}") from e
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ConfigError(f"Config {path} must be a mapping")
            data.update(loaded)

        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config: {e}") from e

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the config as YAML and return the path written."""
        path = Path(path) if path is not None else Config.default_config_file()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json", exclude_none=True), f, sort_keys=False)
        return path
