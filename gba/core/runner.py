"""Feature runner: one locked load, decide, prepare and execute cycle."""

import dataclasses
import logging
import re
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..models.config import ProjectConfig
from ..models.feature import FeatureState, WorktreeInfo
from ..prompts.manager import PromptManager
from ..services.agent_service import AgentService
from ..services.exceptions import GitServiceError
from ..services.git_service import GitService
from ..utils.config_manager import ConfigManager
from .constants import FEATURE_ID_WIDTH
from .context_builder import scan_repository
from .driver import ChunkCallback, ExecutionDriver
from .feature_lock import FeatureLock
from .resume import (
    ResumeAction,
    ResumeDecision,
    ResumeEngine,
    RetryChoice,
    RunRequest,
    decide,
    resolve_choice,
)
from .state_store import StateStore

logger = logging.getLogger(__name__)

ChoiceCallback = Callable[[ResumeDecision], Optional[RetryChoice]]


def feature_id_from_name(name: str) -> str:
    """Derive a stable, zero-padded feature id from a feature name."""
    return f"{zlib.crc32(name.encode('utf-8')) % 10 ** FEATURE_ID_WIDTH:0{FEATURE_ID_WIDTH}d}"


def normalize_feature_id(feature_id: str) -> str:
    """Zero-pad numeric ids (``7`` -> ``0007``); reject path-like ids."""
    feature_id = feature_id.strip()
    if not re.fullmatch(r"[A-Za-z0-9_-]+", feature_id):
        raise ValueError(f"Invalid feature id: {feature_id!r}")
    if feature_id.isdigit():
        return feature_id.zfill(FEATURE_ID_WIDTH)
    return feature_id


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "feature"


@dataclass
class RunOutcome:
    """What a run invocation did."""
    action: ResumeAction
    feature_id: str
    record: Optional[FeatureState] = None
    decision: Optional[ResumeDecision] = None
    resumed: bool = False

    @property
    def executed(self) -> bool:
        return self.action in (ResumeAction.START_FRESH, ResumeAction.RESUME)

    @property
    def result(self) -> Optional[Dict[str, Any]]:
        return self.record.result if self.record else None


class FeatureRunner:
    """Runs feature tasks for one project."""

    def __init__(
        self,
        project_root: Path,
        config: ProjectConfig,
        agent: AgentService,
        prompts: Optional[PromptManager] = None,
        store: Optional[StateStore] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ):
        self.project_root = Path(project_root)
        self.config = config
        self.agent = agent
        self.paths = ConfigManager(self.project_root)
        self.prompts = prompts or PromptManager(
            self.paths.templates_dir(config), use_bundled=config.prompts.use_bundled,
        )
        self.store = store or StateStore(self.paths.features_dir())
        self.engine = ResumeEngine(self.store, self.prompts)
        self.driver = ExecutionDriver(
            self.store, agent, max_cost_usd=config.limits.max_cost_usd, on_chunk=on_chunk,
        )

    def run(self, request: RunRequest, choose: Optional[ChoiceCallback] = None) -> RunOutcome:
        """Run one invocation under the feature's lock.

        Args:
            request: What to run
            choose: Asked for Retry/Fresh when the stored task failed. Without
                it (or when it returns None) the outcome reports
                ASK_RETRY_OR_FRESH and nothing is executed.
        """
        feature_id = normalize_feature_id(request.feature_id or feature_id_from_name(request.feature_name))
        request = dataclasses.replace(request, feature_id=feature_id)

        with FeatureLock(self.store.lock_path(feature_id), feature_id):
            record = self.store.load(feature_id)
            decision = decide(
                record,
                request.feature_name,
                request.kind,
                resume=request.resume or request.retry,
                fresh=request.fresh,
            )
            logger.info(f"Feature {feature_id}: {decision.action.value} ({decision.reason})")

            if decision.action == ResumeAction.ASK_RETRY_OR_FRESH:
                choice = RetryChoice.RETRY if request.retry else (choose(decision) if choose else None)
                if choice is None:
                    return RunOutcome(decision.action, feature_id, record=record, decision=decision)
                decision = resolve_choice(decision, choice)

            if decision.action == ResumeAction.REPORT_COMPLETION:
                return RunOutcome(decision.action, feature_id, record=record, decision=decision)

            worktree = self._prepare_worktree(decision, request)
            plan = self.engine.prepare(decision, request, worktree=worktree, variables=self._context_variables())

            config = plan.config
            if config.max_turns > self.config.limits.max_turns:
                config = dataclasses.replace(config, max_turns=self.config.limits.max_turns)

            cwd = Path(worktree.path) if worktree else self.project_root
            record = self.driver.run(plan.record, config, plan.prompt, cwd=cwd)
            return RunOutcome(
                decision.action, feature_id, record=record, decision=decision, resumed=plan.resumed,
            )

    def _prepare_worktree(self, decision: ResumeDecision, request: RunRequest) -> Optional[WorktreeInfo]:
        """Create or reuse the feature's worktree for kinds that need one."""
        if not request.kind.uses_worktree:
            return None

        record = decision.record
        if decision.action == ResumeAction.RESUME and record and record.context.worktree:
            stored = record.context.worktree
            if Path(stored.path).is_dir():
                return stored
            logger.warning(f"Worktree {stored.path} is gone; recreating it")

        name = f"{request.feature_id}-{slugify(request.feature_name)}"
        path = self.paths.worktree_dir(self.config) / name
        branch = f"{self.config.worktree.branch_prefix}{name}"

        try:
            git = GitService(self.project_root)
        except GitServiceError:
            logger.warning(f"{self.project_root} is not a git repository; running in the project root")
            return None

        main_branch = self.config.project.repository.main_branch
        base = main_branch if git.branch_exists_local(main_branch) else None
        git.add_worktree(path, branch, base=base)
        return WorktreeInfo(path=str(path), branch=branch)

    def _context_variables(self) -> Dict[str, Any]:
        repo = self.config.repository
        files = scan_repository(
            self.project_root,
            exclude_patterns=repo.exclude_patterns,
            max_file_size=repo.max_file_size,
            max_files=repo.max_files,
        )
        return {
            "repo_path": str(self.project_root),
            "main_branch": self.config.project.repository.main_branch,
            "files": [f.to_dict() for f in files],
        }
