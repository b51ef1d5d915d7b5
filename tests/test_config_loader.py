"""Tests for modules/config_loader.py - Configuration loading utilities."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import yaml

from modules.config_loader import (
    CONFIG_DIR,
    MODULES_DIR,
    PROJECT_ROOT,
    ConfigLoader,
    create_config_loader,
    resolve_config_dir,
)


class TestPathConstants:
    """Tests for path constants."""

    def test_project_root_exists(self):
        """PROJECT_ROOT path exists."""
        assert PROJECT_ROOT.exists()

    def test_config_dir_is_under_modules(self):
        """CONFIG_DIR is under MODULES_DIR."""
        assert CONFIG_DIR.parent == MODULES_DIR

    def test_shipped_config_files_exist(self):
        """Both YAML files ship with the package."""
        assert (CONFIG_DIR / "gateway.yaml").exists()
        assert (CONFIG_DIR / "providers.yaml").exists()


class TestResolveConfigDir:
    """Tests for resolve_config_dir."""

    def test_default(self, monkeypatch):
        """Without override the packaged directory is used."""
        monkeypatch.delenv("AI_GATEWAY_CONFIG_DIR", raising=False)
        assert resolve_config_dir() == CONFIG_DIR

    def test_env_override(self, monkeypatch, temp_dir: Path):
        """The environment variable overrides the directory."""
        monkeypatch.setenv("AI_GATEWAY_CONFIG_DIR", str(temp_dir))
        assert resolve_config_dir() == temp_dir


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_is_loaded_false_initially(self):
        """is_loaded returns False before loading."""
        assert ConfigLoader().is_loaded() is False

    def test_loads_shipped_configs(self, monkeypatch):
        """The shipped gateway.yaml has the documented sections."""
        monkeypatch.delenv("AI_GATEWAY_CONFIG_DIR", raising=False)
        loader = ConfigLoader()
        loader.load_configs()

        gateway = loader.get_gateway_config()
        assert loader.is_loaded() is True
        assert gateway["retry"]["max_retries"] == 3
        assert gateway["http"]["request_timeout"] == 30
        assert "extra_providers" in loader.get_providers_config()

    def test_missing_files_give_empty(self, monkeypatch, temp_dir: Path):
        """Missing files load as empty dictionaries."""
        monkeypatch.setenv("AI_GATEWAY_CONFIG_DIR", str(temp_dir))
        loader = ConfigLoader()
        loader.load_configs()

        assert loader.get_gateway_config() == {}
        assert loader.get_providers_config() == {}
        assert loader.is_loaded() is False

    def test_custom_directory(self, monkeypatch, temp_dir: Path):
        """Configs are read from the override directory."""
        (temp_dir / "gateway.yaml").write_text(yaml.safe_dump({"retry": {"max_retries": 7}}), encoding="utf-8")
        monkeypatch.setenv("AI_GATEWAY_CONFIG_DIR", str(temp_dir))
        loader = ConfigLoader()
        loader.load_configs()

        assert loader.get_gateway_config() == {"retry": {"max_retries": 7}}

    def test_invalid_yaml(self, monkeypatch, temp_dir: Path):
        """Invalid YAML is logged and treated as empty."""
        (temp_dir / "gateway.yaml").write_text("retry: [", encoding="utf-8")
        monkeypatch.setenv("AI_GATEWAY_CONFIG_DIR", str(temp_dir))
        loader = ConfigLoader()

        with patch("modules.config_loader.logger") as mock_logger:
            loader.load_configs()

        assert loader.get_gateway_config() == {}
        mock_logger.error.assert_called_once()

    def test_non_dict_yaml(self, monkeypatch, temp_dir: Path):
        """A YAML list is treated as empty."""
        (temp_dir / "providers.yaml").write_text("- a\n", encoding="utf-8")
        monkeypatch.setenv("AI_GATEWAY_CONFIG_DIR", str(temp_dir))
        loader = ConfigLoader()
        loader.load_configs()

        assert loader.get_providers_config() == {}

    def test_getters_return_copies(self, monkeypatch):
        """Mutating a returned dict does not affect the loader."""
        monkeypatch.delenv("AI_GATEWAY_CONFIG_DIR", raising=False)
        loader = ConfigLoader()
        loader.load_configs()

        loader.get_gateway_config()["retry"] = None
        assert loader.get_gateway_config()["retry"] is not None


    def test_explicit_directory_beats_env(self, monkeypatch, temp_dir: Path):
        """A directory passed to the constructor wins over the environment."""
        monkeypatch.setenv("AI_GATEWAY_CONFIG_DIR", str(temp_dir / "elsewhere"))
        (temp_dir / "providers.yaml").write_text(yaml.safe_dump({"primary_provider": "groq"}), encoding="utf-8")

        loader = ConfigLoader(temp_dir)
        loader.load_configs()

        assert loader.config_dir == temp_dir
        assert loader.get_providers_config() == {"primary_provider": "groq"}


class TestCreateConfigLoader:
    """Tests for create_config_loader."""

    def test_returns_loaded_instance(self, temp_dir: Path):
        """The returned loader has already read its files."""
        (temp_dir / "gateway.yaml").write_text(yaml.safe_dump({"http": {"request_timeout": 9}}), encoding="utf-8")

        loader = create_config_loader(temp_dir)

        assert loader.get_gateway_config() == {"http": {"request_timeout": 9}}

    def test_new_instance_per_call(self, temp_dir: Path):
        """Nothing is cached between calls."""
        first = create_config_loader(temp_dir)
        (temp_dir / "gateway.yaml").write_text(yaml.safe_dump({"retry": {"max_retries": 1}}), encoding="utf-8")
        second = create_config_loader(temp_dir)

        assert first is not second
        assert first.get_gateway_config() == {}
        assert second.get_gateway_config() == {"retry": {"max_retries": 1}}
