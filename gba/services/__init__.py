"""Services wrapping external tools: git and the agent CLI."""

from .agent_service import AgentService, ClaudeCliAgent
from .exceptions import AgentServiceError, BranchNotFoundError, GitServiceError, ServiceError
from .git_service import GitService

__all__ = [
    'AgentService',
    'ClaudeCliAgent',
    'GitService',
    'ServiceError',
    'GitServiceError',
    'BranchNotFoundError',
    'AgentServiceError',
]
