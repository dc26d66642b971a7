import json

import pytest

from storymap import config, paths


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    for name in config.DEFAULTS:
        monkeypatch.delenv(config.ENV_PREFIX + name.upper(), raising=False)
    return tmp_path / "config.json"


def test_defaults_without_config_file(config_path):
    assert config.get_settings(config_path) == config.DEFAULTS


def test_set_setting_persists(config_path):
    config.set_setting("dark_mode", True, config_path)
    assert json.loads(config_path.read_text()) == {"dark_mode": True}
    assert config.get_setting("dark_mode", config_path) is True


def test_environment_overrides_file(config_path, monkeypatch):
    config.set_setting("auto_open_sidebar", True, config_path)
    monkeypatch.setenv("STORYMAP_AUTO_OPEN_SIDEBAR", "off")
    assert config.get_setting("auto_open_sidebar", config_path) is False


def test_environment_string_setting(config_path, monkeypatch):
    monkeypatch.setenv("STORYMAP_STORAGE_BACKEND", "memory")
    assert config.get_setting("storage_backend", config_path) == "memory"


def test_sidebar_defaults(config_path):
    settings = config.get_settings(config_path)
    assert settings["left_sidebar_open"] is True
    assert settings["right_sidebar_open"] is True
    assert settings["right_sidebar_width"] == 300


def test_sidebar_state_persists(config_path):
    config.set_setting("left_sidebar_open", False, config_path)
    config.set_setting("right_sidebar_width", 420, config_path)
    assert config.get_setting("left_sidebar_open", config_path) is False
    assert config.get_setting("right_sidebar_width", config_path) == 420
    assert json.loads(config_path.read_text()) == {
        "left_sidebar_open": False,
        "right_sidebar_width": 420,
    }


def test_environment_integer_setting(config_path, monkeypatch):
    monkeypatch.setenv("STORYMAP_RIGHT_SIDEBAR_WIDTH", "420")
    assert config.get_setting("right_sidebar_width", config_path) == 420


def test_unknown_setting(config_path):
    with pytest.raises(KeyError):
        config.get_setting("api_key", config_path)
    with pytest.raises(KeyError):
        config.set_setting("api_key", "x", config_path)


def test_corrupt_config_falls_back_to_defaults(config_path):
    config_path.write_text("{oops")
    assert config.load_config(config_path) == {}
    assert config.get_setting("log_level", config_path) == "INFO"


def test_data_dir_setting(config_path, tmp_path):
    config.set_setting("data_dir", str(tmp_path / "canvases"), config_path)
    assert config.get_data_dir(config_path) == tmp_path / "canvases"


def test_data_dir_defaults_to_db_dir(config_path):
    assert config.get_data_dir(config_path).name == "db"


def test_relative_data_dir_is_anchored_at_app_dir(config_path):
    config.set_setting("data_dir", "canvases", config_path)
    assert config.get_data_dir(config_path) == paths.get_app_dir() / "canvases"
