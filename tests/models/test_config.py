"""Tests for config models."""

import pytest
from pydantic import ValidationError

from gba.models.config import ProjectConfig


class TestConfigModels:
    """Test suite for config models."""

    def test_defaults(self):
        config = ProjectConfig()

        assert config.agent.model == "claude-sonnet-4-20250514"
        assert config.agent.max_tokens == 4096
        assert config.prompts.directory == "./.gba/templates"
        assert config.prompts.use_bundled is True
        assert config.worktree.directory == "./.trees"
        assert config.worktree.branch_prefix == "gba/"
        assert config.limits.max_turns == 100
        assert config.limits.max_cost_usd == 10.0
        assert ".gba/" in config.repository.exclude_patterns

    def test_yaml_dict_uses_camel_case(self):
        data = ProjectConfig().to_yaml_dict()

        assert data["project"]["repository"]["mainBranch"] == "main"
        assert data["agent"]["maxTokens"] == 4096
        assert data["prompts"]["useBundled"] is True
        assert data["repository"]["maxFileSize"] == 1_048_576
        assert data["worktree"]["branchPrefix"] == "gba/"
        assert data["limits"]["maxCostUsd"] == 10.0

    def test_loads_camel_case_keys(self):
        config = ProjectConfig.model_validate({
            "project": {"name": "demo", "repository": {"url": "git@example.com:o/r.git", "mainBranch": "develop"}},
            "limits": {"maxTurns": 20, "maxCostUsd": 2.5},
        })

        assert config.project.repository.main_branch == "develop"
        assert config.limits.max_turns == 20
        assert config.limits.max_cost_usd == 2.5

    def test_round_trip(self):
        config = ProjectConfig()
        config.worktree.branch_prefix = "feature/"
        assert ProjectConfig.model_validate(config.to_yaml_dict()) == config

    @pytest.mark.parametrize("temperature", [-0.1, 2.1])
    def test_temperature_range(self, temperature):
        with pytest.raises(ValidationError):
            ProjectConfig.model_validate({"agent": {"temperature": temperature}})

    def test_limits_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProjectConfig.model_validate({"limits": {"maxCostUsd": 0}})
