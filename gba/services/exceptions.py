"""Custom exceptions for service layer."""


class ServiceError(Exception):
    """Base exception for all service-related errors."""

    pass


class GitServiceError(ServiceError):
    """Exception raised for Git service operations."""

    pass


class BranchNotFoundError(GitServiceError):
    """Exception raised when a Git branch is not found."""

    pass


class AgentServiceError(ServiceError):
    """Exception raised when the agent call cannot be completed."""

    pass
