import json
import logging

from vibe_coding import config
from vibe_coding.config import DEFAULT_SETTINGS, Settings, load_settings, save_settings


def test_defaults_when_file_missing(isolated_settings) -> None:
    settings = load_settings()

    assert settings.to_dict() == DEFAULT_SETTINGS
    assert not isolated_settings.exists()


def test_save_then_load(isolated_settings) -> None:
    assert save_settings({"port": 8080, "max_total_size": None})

    settings = load_settings()

    assert settings.port == 8080
    assert settings.max_total_size is None
    assert settings.max_file_size == DEFAULT_SETTINGS["max_file_size"]


def test_save_merges_into_existing_file(isolated_settings) -> None:
    save_settings({"port": 8080})
    save_settings({"batch_size": 5})

    with open(isolated_settings, encoding="utf-8") as f:
        assert json.load(f) == {"port": 8080, "batch_size": 5}


def test_invalid_values_fall_back_to_defaults(isolated_settings, caplog) -> None:
    save_settings({"port": 80, "batch_size": "many", "ignore_file": "", "colour": "blue"})

    with caplog.at_level(logging.WARNING, logger=config.__name__):
        settings = load_settings()

    assert settings.port == DEFAULT_SETTINGS["port"]
    assert settings.batch_size == DEFAULT_SETTINGS["batch_size"]
    assert settings.ignore_file == DEFAULT_SETTINGS["ignore_file"]
    assert "Invalid value for setting 'port'" in caplog.text
    assert "Ignoring unknown setting: colour" in caplog.text


def test_corrupt_file_gives_defaults(isolated_settings) -> None:
    isolated_settings.parent.mkdir(parents=True)
    isolated_settings.write_text("{not json", encoding="utf-8")

    assert load_settings().to_dict() == DEFAULT_SETTINGS


def test_explicit_settings_file(tmp_path) -> None:
    settings_file = tmp_path / "custom.json"
    save_settings({"host": "0.0.0.0"}, str(settings_file))

    assert load_settings(str(settings_file)).host == "0.0.0.0"


def test_replace_ignores_none() -> None:
    settings = Settings(max_file_size=100)

    replaced = settings.replace(max_file_size=None, batch_size=3)

    assert replaced.max_file_size == 100
    assert replaced.batch_size == 3
    assert settings.batch_size == DEFAULT_SETTINGS["batch_size"]
