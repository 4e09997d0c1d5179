"""Path defaults for beadboard."""

from pathlib import Path


class Config:
    """Default locations used by the CLI and the TUI."""

    DEFAULT_DATA_DIR = Path.home() / ".beadboard"
    DEFAULT_DB_PATH = Path(".beads") / "beads.db"
    CONFIG_FILENAME = "config.yaml"
    LOG_FILENAME = "bu.log"

    @classmethod
    def default_config_file(cls) -> Path:
        return cls.DEFAULT_DATA_DIR / cls.CONFIG_FILENAME

    @classmethod
    def default_log_file(cls) -> Path:
        return cls.DEFAULT_DATA_DIR / cls.LOG_FILENAME
