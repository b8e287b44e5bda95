"""Prompt templates, front matter and execution configuration."""

from .manager import BUNDLED_TEMPLATES_DIR, PromptManager
from .resolver import ResumeResolution, TemplateResolver
from .template import ExecutionConfig, PromptTemplate, SystemPrompt, SystemPromptMode

__all__ = [
    'BUNDLED_TEMPLATES_DIR',
    'PromptManager',
    'ResumeResolution',
    'TemplateResolver',
    'ExecutionConfig',
    'PromptTemplate',
    'SystemPrompt',
    'SystemPromptMode',
]
