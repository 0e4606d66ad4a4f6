"""Tests for grp configuration loading."""

import os
from datetime import datetime
from pathlib import Path

import pytest

from grpcli.config import GrpConfig, get_grp_home, load_config, load_config_or_default
from grpcli.errors import ConfigError


class TestGetGrpHome:
    """Tests for get_grp_home()."""

    def test_default_home(self, monkeypatch):
        monkeypatch.delenv("GRP_HOME", raising=False)

        assert get_grp_home() == Path.home() / ".config" / "grp"

    def test_custom_home_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRP_HOME", str(tmp_path))

        assert get_grp_home() == tmp_path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="grp config.yaml not found"):
            load_config(tmp_path / "config.yaml")

    def test_loads_from_grp_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRP_HOME", str(tmp_path))
        (tmp_path / "config.yaml").write_text(
            "plugin_dir: /opt/grp/plugins\n"
            "log_level: debug\n"
            "log_format: structured\n"
            "max_workers: 4\n"
            "approval_timeout: 30\n"
        )

        config = load_config()

        assert config.plugin_dir == "/opt/grp/plugins"
        assert config.log_level == "DEBUG"
        assert config.log_format == "structured"
        assert config.max_workers == 4
        assert config.approval_timeout == 30

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        config = load_config(path)

        assert config == GrpConfig()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("log_level: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML syntax"):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(path)

    def test_unknown_keys_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("plugins_dir: ./x\n")

        with pytest.raises(ConfigError, match="Unknown configuration keys: plugins_dir"):
            load_config(path)

    @pytest.mark.parametrize(
        "content,message",
        [
            ("log_format: xml\n", "log_format must be one of"),
            ("max_workers: 0\n", "max_workers must be a positive integer"),
            ("max_workers: many\n", "max_workers must be a positive integer"),
            ("approval_timeout: soon\n", "approval_timeout must be a number"),
        ],
    )
    def test_bad_values(self, tmp_path, content, message):
        path = tmp_path / "config.yaml"
        path.write_text(content)

        with pytest.raises(ConfigError, match=message):
            load_config(path)

    def test_env_file_loaded(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GRP_TEST_TOKEN", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("GRP_TEST_TOKEN=secret\n")
        path = tmp_path / "config.yaml"
        path.write_text(f"env_file: {env_file}\n")

        try:
            load_config(path)
            assert os.environ["GRP_TEST_TOKEN"] == "secret"
        finally:
            os.environ.pop("GRP_TEST_TOKEN", None)

    def test_missing_env_file_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(f"env_file: {tmp_path / 'missing.env'}\n")

        config = load_config(path)

        assert config.env_file == str(tmp_path / "missing.env")

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRP_PLUGIN_DIR", "/env/plugins")
        monkeypatch.setenv("GRP_LOG_LEVEL", "warning")
        path = tmp_path / "config.yaml"
        path.write_text("plugin_dir: ./plugins\nlog_level: INFO\n")

        config = load_config(path)

        assert config.plugin_dir == "/env/plugins"
        assert config.log_level == "WARNING"


class TestLoadConfigOrDefault:
    """Tests for load_config_or_default()."""

    def test_defaults_when_missing(self):
        config = load_config_or_default()

        assert config.plugin_dir == "./plugins"
        assert config.log_level == "INFO"
        assert config.log_format == "pretty"

    def test_defaults_still_take_env_overrides(self, monkeypatch):
        monkeypatch.setenv("GRP_PLUGIN_DIR", "/env/plugins")

        assert load_config_or_default().plugin_dir == "/env/plugins"


class TestGrpConfig:
    """Tests for GrpConfig helpers."""

    def test_no_log_file(self):
        assert GrpConfig().get_log_file_path() is None

    def test_log_file_date_interpolation(self, tmp_path):
        config = GrpConfig(log_file=str(tmp_path / "grp-{date}.log"))

        today = datetime.now().strftime("%Y-%m-%d")
        assert config.get_log_file_path() == tmp_path / f"grp-{today}.log"
