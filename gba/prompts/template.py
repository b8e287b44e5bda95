"""Prompt templates and the execution configuration carried in their front matter.

A template is a Markdown file with YAML front matter::

    ---
    systemPrompt: "You are a careful reviewer"
    usePreset: true
    tools: []
    maxTurns: 50
    ---
    Review the work on {{ feature_name }} ...

``usePreset`` and ``tools`` are required. ``systemPrompt`` is required when
``usePreset`` is false. ``maxTurns`` defaults to 100.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import yaml
from jinja2 import Environment, TemplateSyntaxError, meta

from ..core.constants import DEFAULT_MAX_TURNS
from ..exceptions import InvalidFrontMatterError

FRONT_MATTER_DELIMITER = "---"


class SystemPromptMode(str, Enum):
    """How the template's system prompt text is used."""
    PRESET = "preset"  # appended to the agent's predefined system prompt
    LITERAL = "literal"  # replaces it entirely


@dataclass(frozen=True)
class SystemPrompt:
    mode: SystemPromptMode
    text: str = ""

    @classmethod
    def preset(cls, text: str = "") -> "SystemPrompt":
        return cls(SystemPromptMode.PRESET, text)

    @classmethod
    def literal(cls, text: str) -> "SystemPrompt":
        return cls(SystemPromptMode.LITERAL, text)


@dataclass(frozen=True)
class ExecutionConfig:
    """Resolved agent configuration for one task kind.

    An empty ``tools`` tuple means all tools are enabled.
    """
    system_prompt: SystemPrompt
    tools: Tuple[str, ...] = ()
    max_turns: int = DEFAULT_MAX_TURNS

    @property
    def use_preset(self) -> bool:
        return self.system_prompt.mode is SystemPromptMode.PRESET


def split_front_matter(source: str) -> Tuple[Optional[str], str, bool]:
    """Split ``---`` delimited front matter from a template body.

    Returns:
        Tuple of (front_matter_or_None, body, terminated). ``terminated`` is
        False when an opening delimiter has no closing one.
    """
    lines = source.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        return None, source, True

    for idx in range(1, len(lines)):
        if lines[idx].strip() == FRONT_MATTER_DELIMITER:
            front_matter = "\n".join(lines[1:idx])
            body = "\n".join(lines[idx + 1:])
            if source.endswith("\n"):
                body += "\n"
            return front_matter, body, True

    return None, source, False


def parse_execution_config(name: str, front_matter: str) -> ExecutionConfig:
    """Build an ExecutionConfig from raw front matter text.

    Raises:
        InvalidFrontMatterError: If the YAML is invalid or a required field is missing
    """
    try:
        data = yaml.safe_load(front_matter)
    except yaml.YAMLError as e:
        raise InvalidFrontMatterError(name, f"YAML parse error: {e}") from e

    if not isinstance(data, dict):
        raise InvalidFrontMatterError(name, "front matter must be a mapping")

    missing = [key for key in ("usePreset", "tools") if key not in data]
    if missing:
        raise InvalidFrontMatterError(name, f"missing required field(s): {', '.join(missing)}")

    use_preset = data["usePreset"]
    if not isinstance(use_preset, bool):
        raise InvalidFrontMatterError(name, "usePreset must be true or false")

    tools = data["tools"]
    if tools is None:
        tools = []
    if not isinstance(tools, list) or not all(isinstance(t, str) for t in tools):
        raise InvalidFrontMatterError(name, "tools must be a list of tool names")

    system_text = data.get("systemPrompt")
    if system_text is None:
        system_text = ""
    if not isinstance(system_text, str):
        raise InvalidFrontMatterError(name, "systemPrompt must be a string")
    if not use_preset and not system_text.strip():
        raise InvalidFrontMatterError(name, "systemPrompt is required when usePreset is false")

    max_turns = data.get("maxTurns", DEFAULT_MAX_TURNS)
    if isinstance(max_turns, bool) or not isinstance(max_turns, int) or max_turns <= 0:
        raise InvalidFrontMatterError(name, "maxTurns must be a positive integer")

    system_prompt = SystemPrompt.preset(system_text) if use_preset else SystemPrompt.literal(system_text)
    return ExecutionConfig(system_prompt=system_prompt, tools=tuple(tools), max_turns=max_turns)


@dataclass
class PromptTemplate:
    """A named template: raw front matter plus the Jinja body.

    Front matter is only parsed on demand, so a template whose front matter
    is itself dynamic (the resume template) can still be rendered.
    """
    name: str
    body: str
    front_matter: Optional[str] = None
    origin: str = "registered"
    terminated: bool = True
    _config: Optional[ExecutionConfig] = field(default=None, repr=False, compare=False)

    @classmethod
    def parse(cls, name: str, source: str, origin: str = "registered") -> "PromptTemplate":
        front_matter, body, terminated = split_front_matter(source)
        return cls(name=name, body=body, front_matter=front_matter, origin=origin, terminated=terminated)

    def execution_config(self) -> ExecutionConfig:
        """Parse (once) and return the front matter configuration."""
        if self._config is None:
            if not self.terminated:
                raise InvalidFrontMatterError(self.name, "front matter has no closing '---'")
            if self.front_matter is None:
                raise InvalidFrontMatterError(self.name, "template has no front matter")
            self._config = parse_execution_config(self.name, self.front_matter)
        return self._config

    def variables_hint(self) -> List[str]:
        """Names of the top-level variables the body references."""
        try:
            ast = Environment().parse(self.body)
        except TemplateSyntaxError:
            return []
        return sorted(meta.find_undeclared_variables(ast))
