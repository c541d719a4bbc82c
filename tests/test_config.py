import json
from pathlib import Path

from task_hierarchy.config import (
    CONFIG_ENV,
    DB_ENV,
    LOG_LEVEL_ENV,
    EngineConfig,
    get_config_path,
    load_config,
    save_config,
)
from task_hierarchy.task_node import TickStride


def test_defaults_when_no_file(tmp_path):
    config = load_config()
    assert config == EngineConfig()
    assert get_config_path() == tmp_path / "config.json"


def test_save_and_load_round_trip(tmp_path):
    path = save_config(EngineConfig(db_path=tmp_path / "x.db", tick_stride=TickStride.MONTH, default_project="p9"))
    assert path.exists()

    config = load_config()
    assert config.db_path == tmp_path / "x.db"
    assert config.tick_stride == TickStride.MONTH
    assert config.default_project == "p9"


def test_unreadable_file_falls_back_to_defaults(tmp_path):
    (tmp_path / "config.json").write_text("{not json", encoding="utf-8")
    assert load_config() == EngineConfig()

    (tmp_path / "config.json").write_text(json.dumps({"tick_stride": "fortnight"}), encoding="utf-8")
    assert load_config().tick_stride == TickStride.WEEK


def test_environment_overrides(tmp_path, monkeypatch):
    save_config(EngineConfig(db_path=Path("from-file.db")))
    monkeypatch.setenv(DB_ENV, str(tmp_path / "env.db"))
    monkeypatch.setenv(LOG_LEVEL_ENV, "debug")

    config = load_config()
    assert config.db_path == tmp_path / "env.db"
    assert config.log_level == "DEBUG"


def test_config_path_override(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "elsewhere.json"))
    assert get_config_path() == tmp_path / "elsewhere.json"
