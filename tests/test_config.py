import json

import pytest

from totem.config import Settings, load_settings


def test_defaults(tmp_path):
    settings = load_settings(config_file=tmp_path / "missing.json", environ={})
    assert settings == Settings()
    assert settings.difficulty == 2
    assert settings.auto_mine is True


def test_file_then_env_precedence(tmp_path):
    config_file = tmp_path / "totem_config.json"
    config_file.write_text(json.dumps({"difficulty": 3, "port": 9000, "unknown": "ignored"}))

    settings = load_settings(
        config_file=config_file,
        environ={"TOTEM_DIFFICULTY": "4", "TOTEM_AUTO_MINE": "false", "TOTEM_CHAIN_PATH": ""},
    )
    assert settings.difficulty == 4
    assert settings.port == 9000
    assert settings.auto_mine is False
    assert settings.chain_path == ""


def test_config_file_from_env(tmp_path):
    config_file = tmp_path / "custom.json"
    config_file.write_text(json.dumps({"log_level": "DEBUG"}))
    settings = load_settings(environ={"TOTEM_CONFIG": str(config_file)})
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    "environ",
    [
        {"TOTEM_DIFFICULTY": "hard"},
        {"TOTEM_DIFFICULTY": "-1"},
        {"TOTEM_AUTO_MINE": "maybe"},
    ],
)
def test_invalid_values_rejected(tmp_path, environ):
    with pytest.raises(ValueError):
        load_settings(config_file=tmp_path / "missing.json", environ=environ)
