"""Feature task data models.

One ``FeatureState`` is persisted per feature identity as
``.gba/features/<feature_id>/state.yml``. The models validate the record
invariants both when a record is loaded and after every transition.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from ..exceptions import StatsRegressionError


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class TaskKind(str, Enum):
    """Kinds of feature task."""
    PLANNING = "planning"
    IMPLEMENTATION = "implementation"
    VERIFICATION = "verification"

    @property
    def template_name(self) -> str:
        """Name of the prompt template driving this kind."""
        return _TEMPLATE_NAMES[self]

    @property
    def uses_worktree(self) -> bool:
        return self is not TaskKind.PLANNING

    def __str__(self) -> str:
        return self.value


_TEMPLATE_NAMES = {
    TaskKind.PLANNING: "plan",
    TaskKind.IMPLEMENTATION: "implement",
    TaskKind.VERIFICATION: "verify",
}


class TaskState(str, Enum):
    """Execution state enumeration."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class FeatureInfo(BaseModel):
    """Feature identity and human context."""
    name: str
    id: str
    description: Optional[str] = None


class TaskInfo(BaseModel):
    """What kind of task this record tracks and which template produced it."""
    kind: TaskKind
    description: Optional[str] = None
    template: str


class StatusInfo(BaseModel):
    """Mutable execution status, owned by the execution driver."""
    state: TaskState = TaskState.PENDING
    current_phase: Optional[str] = None
    current_step: Optional[str] = None
    message: Optional[str] = None


class CostInfo(BaseModel):
    """Token and dollar usage."""
    input_tokens: int = Field(0, ge=0)
    output_tokens: int = Field(0, ge=0)
    total_cost_usd: float = Field(0.0, ge=0)


class ExecutionStats(BaseModel):
    """Monotonically non-decreasing execution counters."""
    turns: int = Field(0, ge=0)
    cost: CostInfo = Field(default_factory=CostInfo)

    def plus(
        self,
        turns: int = 0,
        input_tokens: int = 0,
        output_tokens: int = 0,
        total_cost_usd: float = 0.0,
    ) -> "ExecutionStats":
        """Return new absolute totals with the given amounts added."""
        return ExecutionStats(
            turns=self.turns + turns,
            cost=CostInfo(
                input_tokens=self.cost.input_tokens + input_tokens,
                output_tokens=self.cost.output_tokens + output_tokens,
                total_cost_usd=round(self.cost.total_cost_usd + total_cost_usd, 6),
            ),
        )

    def as_tuple(self) -> Tuple[int, int, int, float]:
        return (
            self.turns,
            self.cost.input_tokens,
            self.cost.output_tokens,
            self.cost.total_cost_usd,
        )

    def advance_to(self, new: "ExecutionStats") -> "ExecutionStats":
        """Validate that ``new`` does not regress any counter and return it.

        Checkpoints always carry absolute totals, so applying the same totals
        twice leaves the stats unchanged.

        Raises:
            StatsRegressionError: If any counter in ``new`` is lower
        """
        names = ("turns", "input_tokens", "output_tokens", "total_cost_usd")
        for name, old_value, new_value in zip(names, self.as_tuple(), new.as_tuple()):
            if new_value < old_value:
                raise StatsRegressionError(
                    f"Checkpoint would decrease {name} from {old_value} to {new_value}"
                )
        return new.model_copy(deep=True)


class WorktreeInfo(BaseModel):
    """Git worktree the task runs in."""
    path: str
    branch: str


class CheckpointInfo(BaseModel):
    """When and why the last checkpoint was written."""
    timestamp: datetime
    description: str


class ContextInfo(BaseModel):
    """Execution context needed to resume."""
    worktree: Optional[WorktreeInfo] = None
    last_checkpoint: Optional[CheckpointInfo] = None
    agent_context: Dict[str, Any] = Field(default_factory=dict)


class Timestamps(BaseModel):
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class FeatureState(BaseModel):
    """The persisted record for one feature task."""
    feature: FeatureInfo
    task: TaskInfo
    status: StatusInfo = Field(default_factory=StatusInfo)
    execution: ExecutionStats = Field(default_factory=ExecutionStats)
    result: Optional[Dict[str, Any]] = None
    context: ContextInfo = Field(default_factory=ContextInfo)
    timestamps: Timestamps

    @model_validator(mode="after")
    def _validate_invariants(self) -> "FeatureState":
        self.check_invariants()
        return self

    @classmethod
    def new(
        cls,
        feature_name: str,
        feature_id: str,
        kind: TaskKind,
        description: Optional[str] = None,
        template: Optional[str] = None,
    ) -> "FeatureState":
        """Create a pending record for a feature task."""
        now = utcnow()
        return cls(
            feature=FeatureInfo(name=feature_name, id=feature_id, description=description),
            task=TaskInfo(
                kind=kind,
                description=description,
                template=template or kind.template_name,
            ),
            timestamps=Timestamps(created_at=now, updated_at=now),
        )

    @property
    def feature_id(self) -> str:
        return self.feature.id

    @property
    def state(self) -> TaskState:
        return self.status.state

    @property
    def identity(self) -> Tuple[str, str]:
        return self.feature.name, self.feature.id

    def check_invariants(self) -> None:
        """Raise ValueError if the record breaks a state invariant."""
        completed = self.status.state == TaskState.COMPLETED
        if completed != (self.result is not None):
            raise ValueError("result must be present if and only if state is completed")
        if completed != (self.timestamps.completed_at is not None):
            raise ValueError("completed_at must be set if and only if state is completed")

    def touch(self) -> None:
        self.timestamps.updated_at = utcnow()

    def _ensure_not_completed(self, action: str) -> None:
        if self.status.state == TaskState.COMPLETED:
            raise ValueError(f"Cannot {action}: task already completed")

    def mark_in_progress(self, message: Optional[str] = None) -> None:
        self._ensure_not_completed("start execution")
        self.status.state = TaskState.IN_PROGRESS
        if message is not None:
            self.status.message = message
        self.touch()

    def record_progress(
        self,
        stats: Optional[ExecutionStats] = None,
        phase: Optional[str] = None,
        step: Optional[str] = None,
        message: Optional[str] = None,
        checkpoint: Optional[str] = None,
    ) -> None:
        """Apply a checkpoint: absolute stats plus optional phase/step/message."""
        if stats is not None:
            self.execution = self.execution.advance_to(stats)
        if phase is not None:
            self.status.current_phase = phase
        if step is not None:
            self.status.current_step = step
        if message is not None:
            self.status.message = message
        now = utcnow()
        if checkpoint:
            self.context.last_checkpoint = CheckpointInfo(timestamp=now, description=checkpoint)
        self.timestamps.updated_at = now

    def mark_completed(self, result: Dict[str, Any], message: Optional[str] = None) -> None:
        self._ensure_not_completed("complete")
        now = utcnow()
        self.status.state = TaskState.COMPLETED
        self.status.message = message or "completed"
        self.result = dict(result)
        self.timestamps.completed_at = now
        self.timestamps.updated_at = now
        self.check_invariants()

    def mark_failed(self, message: str) -> None:
        self._ensure_not_completed("fail")
        self.status.state = TaskState.FAILED
        self.status.message = message
        self.touch()


@dataclass
class ResumeContext:
    """Everything needed to re-render a continuation prompt. Never persisted."""
    feature_name: str
    feature_id: str
    kind: TaskKind
    current_phase: Optional[str]
    current_step: Optional[str]
    stats: ExecutionStats
    last_message: Optional[str]
    plan: Optional[str]
    worktree: Optional[WorktreeInfo]
    use_preset: bool
    system_prompt: str
    tools: List[str] = field(default_factory=list)
    max_turns: int = 100

    def to_variables(self) -> Dict[str, Any]:
        """Render variables for the resume template."""
        return {
            "original_kind": self.kind.value,
            "current_phase": self.current_phase,
            "current_step": self.current_step,
            "turns_so_far": self.stats.turns,
            "cost_so_far": self.stats.cost.total_cost_usd,
            "input_tokens_so_far": self.stats.cost.input_tokens,
            "output_tokens_so_far": self.stats.cost.output_tokens,
            "last_message": self.last_message,
            "plan": self.plan,
            "worktree_path": self.worktree.path if self.worktree else None,
            "worktree_branch": self.worktree.branch if self.worktree else None,
            "use_preset": self.use_preset,
            "system_prompt": self.system_prompt,
            "tools": list(self.tools),
            "max_turns": self.max_turns,
        }
