"""Tests for TemplateResolver."""

import pytest

from gba.exceptions import InvalidFrontMatterError, TemplateNotFoundError
from gba.models.feature import TaskKind
from gba.prompts.manager import PromptManager
from gba.prompts.resolver import TemplateResolver


@pytest.fixture
def resolver():
    return TemplateResolver(PromptManager())


class TestTemplateResolver:

    def test_resolve_implementation(self, resolver):
        config = resolver.resolve(TaskKind.IMPLEMENTATION)

        assert config.use_preset is True
        assert list(config.tools) == []

    def test_resolve_accepts_kind_values(self, resolver):
        assert resolver.resolve("planning") == resolver.resolve(TaskKind.PLANNING)

    def test_resolve_is_deterministic(self, resolver):
        assert resolver.resolve(TaskKind.VERIFICATION) == resolver.resolve(TaskKind.VERIFICATION)

    def test_resolve_all_covers_every_kind(self, resolver):
        configs = resolver.resolve_all()

        assert set(configs) == set(TaskKind)
        assert configs[TaskKind.PLANNING].max_turns == 50
        assert not configs[TaskKind.VERIFICATION].use_preset

    def test_resume_uses_original_kind(self, resolver):
        resolution = resolver.resolve_resume(TaskKind.IMPLEMENTATION)

        assert resolution.template == "resume"
        assert resolution.original_kind is TaskKind.IMPLEMENTATION
        assert resolution.config == resolver.resolve(TaskKind.IMPLEMENTATION)
        assert resolution.variables == {
            "use_preset": True,
            "system_prompt": resolution.config.system_prompt.text,
            "tools": [],
            "max_turns": resolution.config.max_turns,
        }

    def test_resume_of_verification_carries_literal_prompt(self, resolver):
        config = resolver.resolve_resume(TaskKind.VERIFICATION).config

        assert config.use_preset is False
        assert config.system_prompt.text
        assert "Bash" in config.tools

    def test_resolve_resume_kind_requires_original(self, resolver):
        with pytest.raises(ValueError):
            resolver.resolve("resume")
        assert resolver.resolve("resume", original_kind=TaskKind.PLANNING) == resolver.resolve(TaskKind.PLANNING)

    def test_resume_front_matter_never_parsed(self):
        manager = PromptManager()
        manager.register("resume", "---\nusePreset: {{ use_preset }}\n---\nnot yaml config\n")

        config = TemplateResolver(manager).resolve_resume(TaskKind.IMPLEMENTATION).config

        assert config.use_preset is True

    def test_missing_template(self, tmp_path):
        manager = PromptManager(tmp_path, use_bundled=False)
        manager.register("plan", "---\nusePreset: true\ntools: []\n---\nplan\n")
        resolver = TemplateResolver(manager)

        with pytest.raises(TemplateNotFoundError):
            resolver.resolve(TaskKind.IMPLEMENTATION)
        with pytest.raises(TemplateNotFoundError, match="resume"):
            resolver.resolve_resume(TaskKind.PLANNING)

    def test_invalid_front_matter(self):
        manager = PromptManager()
        manager.register("implement", "---\nusePreset: true\n---\nbody\n")

        with pytest.raises(InvalidFrontMatterError, match="tools"):
            TemplateResolver(manager).resolve(TaskKind.IMPLEMENTATION)
