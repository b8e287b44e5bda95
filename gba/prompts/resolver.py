"""Template metadata resolver.

Maps a task kind to the execution configuration declared in the front matter
of that kind's template. Resuming is the one special case: the resume
template's own front matter is never used for configuration. The interrupted
task's original kind is resolved instead, and its values are handed to the
resume template as render variables.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core.constants import RESUME_TEMPLATE
from ..models.feature import TaskKind
from .manager import PromptManager
from .template import ExecutionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResumeResolution:
    """Configuration for resuming a task of ``original_kind``."""
    original_kind: TaskKind
    config: ExecutionConfig
    template: str = RESUME_TEMPLATE

    @property
    def variables(self) -> Dict[str, Any]:
        """The original kind's settings, injected into the resume template."""
        return {
            "use_preset": self.config.use_preset,
            "system_prompt": self.config.system_prompt.text,
            "tools": list(self.config.tools),
            "max_turns": self.config.max_turns,
        }


class TemplateResolver:
    """Resolves execution configuration per task kind."""

    def __init__(self, prompts: PromptManager):
        self.prompts = prompts

    def resolve(
        self,
        kind: Union[TaskKind, str],
        original_kind: Optional[TaskKind] = None,
    ) -> ExecutionConfig:
        """Resolve the execution configuration for a task kind.

        Args:
            kind: A task kind, or "resume"
            original_kind: Kind of the interrupted task; required for "resume"

        Raises:
            TemplateNotFoundError: If the kind's template does not exist
            InvalidFrontMatterError: If its front matter is invalid
        """
        if kind == RESUME_TEMPLATE:
            if original_kind is None:
                raise ValueError("Resolving the resume template needs the original task kind")
            return self.resolve_resume(original_kind).config

        kind = TaskKind(kind)
        config = self.prompts.get_config(kind.template_name)
        logger.debug(
            f"Resolved {kind.value}: use_preset={config.use_preset} "
            f"tools={list(config.tools)} max_turns={config.max_turns}"
        )
        return config

    def resolve_all(self) -> Dict[TaskKind, ExecutionConfig]:
        """Resolve every task kind; fails on the first missing or invalid template."""
        return {kind: self.resolve(kind) for kind in TaskKind}

    def resolve_resume(self, original_kind: TaskKind) -> ResumeResolution:
        """Resolve configuration for resuming a task of ``original_kind``.

        The resume template must exist, but its front matter is not parsed.
        """
        self.prompts.get_template(RESUME_TEMPLATE)
        return ResumeResolution(original_kind=original_kind, config=self.resolve(original_kind))
