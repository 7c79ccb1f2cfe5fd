from datetime import datetime
from pathlib import Path

import pytest
import yaml

from phpbuild.config import BuildConfig, get_phpbuild_home, load_config, safe_name
from phpbuild.errors import ConfigError, ValidationError


def test_get_phpbuild_home_default(monkeypatch):
    monkeypatch.delenv("PHPBUILD_HOME", raising=False)
    assert get_phpbuild_home() == Path("~/.config/phpbuild").expanduser()


def test_get_phpbuild_home_env_var(monkeypatch, tmp_path):
    custom_home = tmp_path / "custom_home"
    monkeypatch.setenv("PHPBUILD_HOME", str(custom_home))
    assert get_phpbuild_home() == custom_home


def test_load_config_missing_default_file(monkeypatch, tmp_path):
    monkeypatch.setenv("PHPBUILD_HOME", str(tmp_path))
    cfg = load_config()
    assert isinstance(cfg, BuildConfig)
    assert cfg.root == "~/.phpbuild"


def test_load_config_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError, match="Configuration file not found"):
        load_config(tmp_path / "nope.yaml")


def test_load_config_valid(monkeypatch, tmp_path):
    monkeypatch.setenv("PHPBUILD_HOME", str(tmp_path))
    config_data = {
        "root": str(tmp_path / "builds"),
        "configure_options": ["--enable-cli"],
        "variants": {"debug": ["--enable-debug"]},
        "extensions": ["xdebug"],
        "make_jobs": 4,
    }
    (tmp_path / "config.yaml").write_text(yaml.dump(config_data))

    cfg = load_config()
    assert cfg.configure_options == ["--enable-cli"]
    assert cfg.extensions == ["xdebug"]
    assert cfg.make_jobs == 4
    assert cfg.source_path == tmp_path / "builds" / "php-src"
    assert cfg.install_prefix("5.4.0") == tmp_path / "builds" / "versions" / "5.4.0"


def test_load_config_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("root: [unclosed")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_load_config_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(path)


def test_load_config_unknown_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"root": "/x", "colour": "blue"}))
    with pytest.raises(ConfigError, match="colour"):
        load_config(path)


def test_directory_overrides(tmp_path):
    cfg = BuildConfig(root=str(tmp_path), log_dir=str(tmp_path / "elsewhere"))
    assert cfg.log_path == tmp_path / "elsewhere"
    assert cfg.state_path == tmp_path / "state"


def test_log_paths_include_target_and_second(tmp_path):
    cfg = BuildConfig(root=str(tmp_path))
    log_path, error_log_path = cfg.log_paths("5.4.0", datetime(2024, 1, 2, 3, 4, 5))
    assert log_path == tmp_path / "logs" / "5.4.0-20240102-030405.log"
    assert error_log_path == tmp_path / "logs" / "5.4.0-20240102-030405.error.log"


def test_safe_name():
    assert safe_name("5.4.0") == "5.4.0"
    assert safe_name("../evil/name") == ".._evil_name"
    assert safe_name("///") == "target"
    assert "/" not in safe_name("a/b")


def test_variant_options():
    cfg = BuildConfig()
    assert cfg.variant_options(None) == []
    assert cfg.variant_options("debug") == ["--enable-debug"]
    with pytest.raises(ValidationError, match="Unknown variant"):
        cfg.variant_options("missing")


def test_patch_rules():
    cfg = BuildConfig(patches={"5.3/Darwin": ["a.patch"]})
    assert cfg.patch_rules() == {(5, 3, "darwin"): ["a.patch"]}


def test_patch_rules_bad_key():
    cfg = BuildConfig(patches={"darwin": ["a.patch"]})
    with pytest.raises(ConfigError, match="Invalid patch rule key"):
        cfg.patch_rules()


def test_log_settings(tmp_path):
    cfg = BuildConfig(root=str(tmp_path), logging={"level": "debug", "console": False})
    assert cfg.get_log_level() == "DEBUG"
    assert cfg.should_log_to_console() is False
    assert cfg.get_log_file_path().parent == tmp_path / "logs"
    assert cfg.get_log_file_path().suffix == ".jsonl"


def test_to_dict_round_trips(tmp_path):
    cfg = BuildConfig(root=str(tmp_path), make_jobs=2)
    assert BuildConfig(**cfg.to_dict()) == cfg
