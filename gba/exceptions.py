"""Error taxonomy for feature task state handling."""

from pathlib import Path
from typing import Optional


class GbaError(Exception):
    """Base exception for all gba errors.

    Carries the feature identity the error concerns when one is known so the
    CLI can always say which record is affected.
    """

    def __init__(self, message: str, feature_id: Optional[str] = None):
        self.feature_id = feature_id
        if feature_id:
            message = f"[feature {feature_id}] {message}"
        super().__init__(message)


class ConfigError(GbaError):
    """Raised when the project configuration cannot be loaded."""

    pass


class CorruptStateError(GbaError):
    """Raised when a persisted record exists but cannot be read back.

    The record is never removed; it is left in place for manual inspection.
    """

    def __init__(self, feature_id: str, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt state record at {path}: {reason}", feature_id)


class KindMismatchError(GbaError):
    """Raised when the stored task kind differs from the requested one."""

    def __init__(self, feature_id: str, stored_kind: str, requested_kind: str):
        self.stored_kind = stored_kind
        self.requested_kind = requested_kind
        super().__init__(
            f"Existing record is a '{stored_kind}' task but '{requested_kind}' was "
            f"requested. Use --fresh to supersede it.",
            feature_id,
        )


class IdentityMismatchError(GbaError):
    """Raised when a feature id is already owned by another feature name."""

    def __init__(self, feature_id: str, stored_name: str, requested_name: str):
        self.stored_name = stored_name
        self.requested_name = requested_name
        super().__init__(
            f"Feature id belongs to '{stored_name}', not '{requested_name}'",
            feature_id,
        )


class ResumeRequiredError(GbaError):
    """Raised when a resumable record exists but resuming was not requested."""

    def __init__(self, feature_id: str, state: str):
        self.state = state
        super().__init__(
            f"A '{state}' task already exists. Pass --resume to continue it "
            f"or --fresh to start over.",
            feature_id,
        )


class TemplateNotFoundError(GbaError):
    """Raised when neither a local nor a bundled template has the name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Template '{name}' not found")


class InvalidFrontMatterError(GbaError):
    """Raised when a template's front matter is missing, unparseable or incomplete."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid front matter in template '{name}': {reason}")


class LockHeldError(GbaError):
    """Raised when another process holds the feature's advisory lock."""

    def __init__(self, feature_id: str, holder_pid: Optional[int] = None):
        self.holder_pid = holder_pid
        holder = f" (PID: {holder_pid})" if holder_pid else ""
        super().__init__(f"Feature task is already running{holder}", feature_id)


class BudgetExceededError(GbaError):
    """Raised after a run hit its turn or cost budget and was marked failed."""

    pass


class AgentCallFailedError(GbaError):
    """Raised after the agent call failed and the run was marked failed."""

    pass


class StatsRegressionError(GbaError):
    """Raised when a checkpoint would decrease an execution counter."""

    pass


class TemplateRenderError(GbaError):
    """Raised when a template body fails to compile or render."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to render template '{name}': {reason}")
