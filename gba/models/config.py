"""Project configuration models.

The configuration lives in ``.gba/config.yml`` and uses camelCase keys.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RepositoryMetadata(_CamelModel):
    """Repository metadata."""
    url: str = ""
    main_branch: str = "main"


class ProjectMetadata(_CamelModel):
    """Project metadata."""
    name: str = ""
    repository: RepositoryMetadata = Field(default_factory=RepositoryMetadata)


class AgentSettings(_CamelModel):
    """Agent defaults."""
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = Field(4096, gt=0)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    timeout: int = Field(300, gt=0)


class PromptsSettings(_CamelModel):
    """Prompt templates configuration."""
    directory: str = "./.gba/templates"
    use_bundled: bool = True


class RepositorySettings(_CamelModel):
    """Repository scanning settings."""
    exclude_patterns: List[str] = Field(
        default_factory=lambda: ["target/", ".git/", "node_modules/", ".trees/", ".gba/"]
    )
    max_file_size: int = Field(1_048_576, gt=0)
    max_files: int = Field(100, gt=0)


class LoggingSettings(_CamelModel):
    """Logging configuration."""
    level: str = "info"
    format: str = "human"
    file: str = ""
    log_to_console: bool = True


class WorktreeSettings(_CamelModel):
    """Worktree configuration."""
    directory: str = "./.trees"
    branch_prefix: str = "gba/"


class LimitsSettings(_CamelModel):
    """Per-run execution limits."""
    max_turns: int = Field(100, gt=0)
    max_cost_usd: float = Field(10.0, gt=0)


class ProjectConfig(_CamelModel):
    """GBA project configuration."""
    version: str = "1.0"
    project: ProjectMetadata = Field(default_factory=ProjectMetadata)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    prompts: PromptsSettings = Field(default_factory=PromptsSettings)
    repository: RepositorySettings = Field(default_factory=RepositorySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    worktree: WorktreeSettings = Field(default_factory=WorktreeSettings)
    limits: LimitsSettings = Field(default_factory=LimitsSettings)

    def to_yaml_dict(self) -> dict:
        """Dump using the on-disk camelCase keys."""
        return self.model_dump(by_alias=True)
