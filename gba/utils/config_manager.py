"""Configuration management utilities."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from ..core.constants import (
    CONFIG_FILE_NAME,
    DATA_DIR_NAME,
    FEATURES_DIR_NAME,
    TEMPLATES_DIR_NAME,
)
from ..core.state_store import atomic_write_text
from ..exceptions import ConfigError
from ..models.config import ProjectConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Manages the project configuration in ``.gba/config.yml``."""

    def __init__(self, project_root: Path):
        """Initialize config manager.

        Args:
            project_root: Root of the project; never taken from the process cwd
        """
        self.project_root = Path(project_root)
        self.data_dir = self.project_root / DATA_DIR_NAME
        self.config_file = self.data_dir / CONFIG_FILE_NAME
        self._config: Optional[ProjectConfig] = None

    def is_gba_project(self) -> bool:
        return self.config_file.is_file()

    def load(self) -> ProjectConfig:
        """Load and validate the project configuration.

        Raises:
            ConfigError: If the project is not initialized or the file is invalid
        """
        if not self.data_dir.is_dir():
            raise ConfigError(f"{self.project_root} is not a gba project. Run 'gba init' first.")
        if not self.config_file.is_file():
            raise ConfigError(f"Missing configuration file {self.config_file}. Run 'gba init' first.")

        try:
            data = yaml.safe_load(self.config_file.read_text(encoding='utf-8')) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read {self.config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_file} must contain a mapping")

        try:
            self._config = ProjectConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {self.config_file}: {e}") from e

        logger.debug(f"Loaded configuration from {self.config_file}")
        return self._config

    def save(self, config: ProjectConfig) -> None:
        content = yaml.safe_dump(config.to_yaml_dict(), sort_keys=False, default_flow_style=False)
        atomic_write_text(self.config_file, content)
        self._config = config
        logger.info(f"Saved configuration to {self.config_file}")

    def _resolve(self, directory: str) -> Path:
        path = Path(directory).expanduser()
        return path if path.is_absolute() else (self.project_root / path)

    def templates_dir(self, config: Optional[ProjectConfig] = None) -> Path:
        """Local templates directory (``prompts.directory``)."""
        config = config or self._config or ProjectConfig()
        return self._resolve(config.prompts.directory)

    def features_dir(self) -> Path:
        return self.data_dir / FEATURES_DIR_NAME

    def worktree_dir(self, config: Optional[ProjectConfig] = None) -> Path:
        """Parent directory of feature worktrees (``worktree.directory``)."""
        config = config or self._config or ProjectConfig()
        return self._resolve(config.worktree.directory)

    def default_templates_dir(self) -> Path:
        return self.data_dir / TEMPLATES_DIR_NAME
