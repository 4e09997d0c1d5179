"""Tests for BoardConfig loading and saving."""

from pathlib import Path

import pytest

from beadboard.core.config import BoardConfig, ConfigError
from beadboard.utils.config import Config


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "config.yaml"


def test_defaults_when_file_missing(config_file):
    config = BoardConfig.load(config_file)
    assert config.db_path == Config.DEFAULT_DB_PATH
    assert config.refresh_interval == 3
    assert config.page_size == 10
    assert not config.show_closed
    assert config.split_percent == 40


def test_load_yaml(config_file):
    config_file.write_text("db_path: /data/beads.db\nrefresh_interval: 10\nshow_closed: true\n")
    config = BoardConfig.load(config_file)
    assert config.db_path == Path("/data/beads.db")
    assert config.refresh_interval == 10
    assert config.show_closed


def test_empty_file_means_defaults(config_file):
    config_file.write_text("")
    assert BoardConfig.load(config_file) == BoardConfig()


def test_overrides_win_and_none_is_ignored(config_file):
    config_file.write_text("refresh_interval: 10\npage_size: 5\n")
    config = BoardConfig.load(config_file, refresh_interval=0, page_size=None)
    assert config.refresh_interval == 0
    assert config.page_size == 5


def test_split_percent_clamped(config_file):
    config_file.write_text("split_percent: 95\n")
    assert BoardConfig.load(config_file).split_percent == 80
    assert BoardConfig(split_percent=3).split_percent == 20


@pytest.mark.parametrize(
    "text",
    [
        "refresh_interval: -1\n",
        "page_size: 0\n",
        "refresh_interval: soon\n",
        "- just\n- a list\n",
        "key: [unclosed\n",
    ],
)
def test_invalid_config(config_file, text):
    config_file.write_text(text)
    with pytest.raises(ConfigError):
        BoardConfig.load(config_file)


def test_save_round_trip(tmp_path):
    path = tmp_path / "nested" / "config.yaml"
    original = BoardConfig(db_path=Path("x/beads.db"), theme=2, show_labels=False)
    assert original.save(path) == path
    assert BoardConfig.load(path) == original
    assert "log_file" not in path.read_text()
