"""Resume decision engine.

``decide`` is a pure function of the persisted record (or its absence) and
the requested feature/kind:

=====================  =======================
stored state           action
=====================  =======================
no record              START_FRESH
completed              REPORT_COMPLETION
failed                 ASK_RETRY_OR_FRESH
in_progress            RESUME
pending                START_FRESH (same identity)
=====================  =======================

The ``resume`` flag only permits the RESUME and ASK_RETRY_OR_FRESH outcomes;
it never chooses between them.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from ..exceptions import IdentityMismatchError, KindMismatchError, ResumeRequiredError
from ..models.feature import FeatureState, ResumeContext, TaskKind, TaskState, WorktreeInfo
from ..prompts.manager import PromptManager
from ..prompts.resolver import TemplateResolver
from ..prompts.template import ExecutionConfig
from .constants import RESUME_TEMPLATE
from .state_store import StateStore

logger = logging.getLogger(__name__)


class ResumeAction(str, Enum):
    START_FRESH = "start_fresh"
    RESUME = "resume"
    REPORT_COMPLETION = "report_completion"
    ASK_RETRY_OR_FRESH = "ask_retry_or_fresh"

    def __str__(self) -> str:
        return self.value


class RetryChoice(str, Enum):
    """The caller's answer to ASK_RETRY_OR_FRESH."""
    RETRY = "retry"
    FRESH = "fresh"


@dataclass(frozen=True)
class ResumeDecision:
    """What to do with a feature, and the record the decision was made on.

    ``supersede`` is set when a fresh start must archive the existing record
    instead of reusing it.
    """
    action: ResumeAction
    record: Optional[FeatureState] = None
    reason: str = ""
    supersede: bool = False


@dataclass(frozen=True)
class RunRequest:
    """One invocation of a feature task."""
    feature_name: str
    kind: TaskKind
    feature_id: Optional[str] = None
    description: Optional[str] = None
    resume: bool = False
    retry: bool = False
    fresh: bool = False


@dataclass
class RunPlan:
    """A prepared run: the record to drive and the rendered prompt."""
    record: FeatureState
    config: ExecutionConfig
    template: str
    prompt: str
    resumed: bool = False
    variables: Dict[str, Any] = field(default_factory=dict)


def decide(
    record: Optional[FeatureState],
    feature_name: str,
    requested_kind: TaskKind,
    resume: bool = False,
    fresh: bool = False,
) -> ResumeDecision:
    """Decide how to react to the persisted state of a feature.

    Raises:
        IdentityMismatchError: The record belongs to a different feature name
        KindMismatchError: The record is for a different task kind
        ResumeRequiredError: A resumable record exists but ``resume`` is False
    """
    if record is None:
        return ResumeDecision(ResumeAction.START_FRESH, reason="no existing record")

    feature_id = record.feature_id
    if record.feature.name != feature_name:
        raise IdentityMismatchError(feature_id, record.feature.name, feature_name)

    if fresh:
        return ResumeDecision(
            ResumeAction.START_FRESH, record, reason="fresh start requested", supersede=True
        )

    stored_kind = record.task.kind
    if stored_kind != requested_kind:
        raise KindMismatchError(feature_id, stored_kind.value, TaskKind(requested_kind).value)

    state = record.state
    if state == TaskState.COMPLETED:
        return ResumeDecision(ResumeAction.REPORT_COMPLETION, record, reason="task already completed")

    if state == TaskState.PENDING:
        return ResumeDecision(ResumeAction.START_FRESH, record, reason="task never started")

    if not resume:
        raise ResumeRequiredError(feature_id, state.value)

    if state == TaskState.FAILED:
        return ResumeDecision(
            ResumeAction.ASK_RETRY_OR_FRESH, record,
            reason=record.status.message or "previous run failed",
        )

    return ResumeDecision(ResumeAction.RESUME, record, reason="resuming from last checkpoint")


def resolve_choice(decision: ResumeDecision, choice: RetryChoice) -> ResumeDecision:
    """Turn the caller's Retry/Fresh answer into a runnable decision."""
    if decision.action != ResumeAction.ASK_RETRY_OR_FRESH:
        raise ValueError(f"No retry/fresh choice pending for action {decision.action}")

    if RetryChoice(choice) is RetryChoice.RETRY:
        return replace(decision, action=ResumeAction.RESUME, reason="retrying failed task")
    return replace(
        decision, action=ResumeAction.START_FRESH, reason="fresh start chosen", supersede=True
    )


def build_resume_context(
    record: FeatureState,
    config: ExecutionConfig,
    plan_text: Optional[str] = None,
) -> ResumeContext:
    """Reconstruct what a continuation prompt needs from a stored record."""
    return ResumeContext(
        feature_name=record.feature.name,
        feature_id=record.feature_id,
        kind=record.task.kind,
        current_phase=record.status.current_phase,
        current_step=record.status.current_step,
        stats=record.execution.model_copy(deep=True),
        last_message=record.status.message,
        plan=plan_text,
        worktree=record.context.worktree,
        use_preset=config.use_preset,
        system_prompt=config.system_prompt.text,
        tools=list(config.tools),
        max_turns=config.max_turns,
    )


class ResumeEngine:
    """Turns a decision into a prepared run."""

    def __init__(self, store: StateStore, prompts: PromptManager, resolver: Optional[TemplateResolver] = None):
        self.store = store
        self.prompts = prompts
        self.resolver = resolver or TemplateResolver(prompts)

    def prepare(
        self,
        decision: ResumeDecision,
        request: RunRequest,
        worktree: Optional[WorktreeInfo] = None,
        variables: Optional[Dict[str, Any]] = None,
    ) -> RunPlan:
        """Create or reuse the record and render the prompt for it.

        Args:
            decision: A START_FRESH or RESUME decision
            request: The invocation; ``feature_id`` must be set
            worktree: Worktree the run executes in, if any
            variables: Extra render variables (repository context)
        """
        if request.feature_id is None:
            raise ValueError("RunRequest.feature_id must be resolved before preparing a run")

        if decision.action == ResumeAction.START_FRESH:
            return self._prepare_fresh(decision, request, worktree, variables or {})
        if decision.action == ResumeAction.RESUME:
            return self._prepare_resume(decision, request, worktree, variables or {})
        raise ValueError(f"Nothing to prepare for action {decision.action}")

    def _base_variables(self, record: FeatureState, extra: Dict[str, Any]) -> Dict[str, Any]:
        feature_id = record.feature_id
        worktree = record.context.worktree
        variables = dict(extra)
        variables.update({
            "feature_name": record.feature.name,
            "feature_id": feature_id,
            "feature_description": record.feature.description,
            "kind": record.task.kind.value,
            "plan_path": str(self.store.plan_path(feature_id)),
            "plan": self.store.load_plan(feature_id),
            "worktree_path": worktree.path if worktree else None,
            "worktree_branch": worktree.branch if worktree else None,
        })
        return variables

    def _prepare_fresh(
        self,
        decision: ResumeDecision,
        request: RunRequest,
        worktree: Optional[WorktreeInfo],
        extra: Dict[str, Any],
    ) -> RunPlan:
        kind = TaskKind(request.kind)
        # resolve before touching the store so a bad template leaves state as it was
        config = self.resolver.resolve(kind)

        if decision.record is not None and not decision.supersede:
            record = decision.record
        else:
            record = FeatureState.new(
                feature_name=request.feature_name,
                feature_id=request.feature_id,
                kind=kind,
                description=request.description,
                template=kind.template_name,
            )

        if worktree is not None:
            record.context.worktree = worktree
        variables = self._base_variables(record, extra)
        prompt = self.prompts.render(kind.template_name, variables)

        if decision.supersede:
            self.store.supersede(request.feature_id)
        record.touch()
        self.store.save(record)
        logger.info(f"Starting {kind.value} for feature {record.feature_id}: {decision.reason}")
        return RunPlan(
            record=record, config=config, template=kind.template_name,
            prompt=prompt, resumed=False, variables=variables,
        )

    def _prepare_resume(
        self,
        decision: ResumeDecision,
        request: RunRequest,
        worktree: Optional[WorktreeInfo],
        extra: Dict[str, Any],
    ) -> RunPlan:
        record = decision.record
        if record is None:
            raise ValueError("A resume decision needs a record")

        resolution = self.resolver.resolve_resume(record.task.kind)
        if worktree is not None:
            record.context.worktree = worktree

        context = build_resume_context(record, resolution.config, self.store.load_plan(record.feature_id))
        variables = self._base_variables(record, extra)
        variables.update(resolution.variables)
        variables.update(context.to_variables())
        prompt = self.prompts.render(RESUME_TEMPLATE, variables)

        logger.info(
            f"Resuming {record.task.kind.value} for feature {record.feature_id} at "
            f"phase={record.status.current_phase} step={record.status.current_step} "
            f"(turns so far: {record.execution.turns})"
        )
        return RunPlan(
            record=record, config=resolution.config, template=RESUME_TEMPLATE,
            prompt=prompt, resumed=True, variables=variables,
        )
