"""Tests for ConfigManager."""

from pathlib import Path

import pytest
import yaml

from gba.exceptions import ConfigError
from gba.models.config import ProjectConfig
from gba.utils.config_manager import ConfigManager


class TestConfigManager:

    def test_missing_project(self, tmp_path):
        manager = ConfigManager(tmp_path)

        assert not manager.is_gba_project()
        with pytest.raises(ConfigError, match="not a gba project"):
            manager.load()

    def test_missing_config_file(self, tmp_path):
        (tmp_path / ".gba").mkdir()
        with pytest.raises(ConfigError, match="Missing configuration file"):
            ConfigManager(tmp_path).load()

    def test_save_and_load(self, tmp_path):
        manager = ConfigManager(tmp_path)
        config = ProjectConfig()
        config.project.name = "demo"
        config.limits.max_turns = 42

        manager.save(config)
        loaded = ConfigManager(tmp_path).load()

        assert manager.is_gba_project()
        assert loaded.project.name == "demo"
        assert loaded.limits.max_turns == 42
        data = yaml.safe_load(manager.config_file.read_text())
        assert data["limits"]["maxTurns"] == 42

    def test_empty_file_uses_defaults(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.data_dir.mkdir()
        manager.config_file.write_text("")

        assert manager.load() == ProjectConfig()

    def test_invalid_yaml(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.data_dir.mkdir()
        manager.config_file.write_text("agent: [unclosed")

        with pytest.raises(ConfigError, match="Failed to read"):
            manager.load()

    def test_invalid_values(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.data_dir.mkdir()
        manager.config_file.write_text("agent:\n  temperature: 5\n")

        with pytest.raises(ConfigError, match="Invalid configuration"):
            manager.load()

    def test_not_a_mapping(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.data_dir.mkdir()
        manager.config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            manager.load()

    def test_path_helpers(self, tmp_path):
        manager = ConfigManager(tmp_path)
        config = ProjectConfig()
        config.prompts.directory = "prompts"
        manager.save(config)
        manager.load()

        assert manager.templates_dir() == tmp_path / "prompts"
        assert manager.features_dir() == tmp_path / ".gba" / "features"
        assert manager.worktree_dir() == tmp_path / ".trees"

    def test_path_helpers_take_explicit_config(self, tmp_path):
        manager = ConfigManager(tmp_path)
        config = ProjectConfig()
        config.worktree.directory = "../trees"
        config.prompts.directory = "/opt/gba-templates"

        assert manager.worktree_dir(config) == tmp_path / ".." / "trees"
        assert manager.templates_dir(config) == Path("/opt/gba-templates")
        assert manager.worktree_dir() == tmp_path / ".trees"
