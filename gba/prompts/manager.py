"""Prompt manager for loading and rendering prompt templates."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, TemplateError

from ..core.constants import TEMPLATE_SUFFIX
from ..exceptions import TemplateNotFoundError, TemplateRenderError
from .template import ExecutionConfig, PromptTemplate

logger = logging.getLogger(__name__)

BUNDLED_TEMPLATES_DIR = Path(__file__).parent / "templates"


class PromptManager:
    """Loads named templates from a local directory with bundled fallbacks.

    Local templates take precedence over bundled ones with the same name.
    Templates are read when the manager is created and on ``reload()`` only.
    """

    def __init__(
        self,
        local_dir: Optional[Path] = None,
        use_bundled: bool = True,
        bundled_dir: Path = BUNDLED_TEMPLATES_DIR,
    ):
        """Initialize prompt manager.

        Args:
            local_dir: Project templates directory (e.g. .gba/templates)
            use_bundled: Fall back to bundled templates for missing names
            bundled_dir: Directory holding the bundled templates
        """
        self.local_dir = local_dir
        self.use_bundled = use_bundled
        self.bundled_dir = bundled_dir
        self._env = Environment(autoescape=False, keep_trailing_newline=True)
        self._templates: Dict[str, PromptTemplate] = {}
        self.reload()

    def _load_dir(self, directory: Path, origin: str) -> int:
        count = 0
        for path in sorted(directory.glob(f"*{TEMPLATE_SUFFIX}")):
            name = path.stem
            if name in self._templates:
                continue
            source = path.read_text(encoding='utf-8')
            self._templates[name] = PromptTemplate.parse(name, source, origin=origin)
            count += 1
        return count

    def reload(self) -> None:
        """Re-read templates from the configured directories."""
        self._templates = {}

        local_exists = self.local_dir is not None and self.local_dir.is_dir()
        if local_exists:
            loaded = self._load_dir(self.local_dir, "local")
            logger.debug(f"Loaded {loaded} template(s) from {self.local_dir}")

        if self.use_bundled or not local_exists:
            loaded = self._load_dir(self.bundled_dir, "bundled")
            logger.debug(f"Loaded {loaded} bundled template(s)")

    def register(self, name: str, source: str) -> PromptTemplate:
        """Register a template from a string, replacing any existing one."""
        template = PromptTemplate.parse(name, source)
        self._templates[name] = template
        return template

    def has_prompt(self, name: str) -> bool:
        return name in self._templates

    def list_prompts(self) -> List[str]:
        return sorted(self._templates)

    def get_template(self, name: str) -> PromptTemplate:
        """Get a template by name.

        Raises:
            TemplateNotFoundError: If no local or bundled template has this name
        """
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFoundError(name) from None

    def get_config(self, name: str) -> ExecutionConfig:
        """Get the execution configuration from a template's front matter."""
        return self.get_template(name).execution_config()

    def render(self, name: str, variables: Dict[str, Any]) -> str:
        """Render a template body with the given variables."""
        template = self.get_template(name)
        try:
            return self._env.from_string(template.body).render(**variables)
        except TemplateError as e:
            raise TemplateRenderError(name, str(e)) from e
