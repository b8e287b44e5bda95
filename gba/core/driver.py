"""Execution driver.

Runs one feature task through the agent and checkpoints the record after
every observable unit of progress. Checkpoints always carry absolute totals
(the stats the record had when the run started plus everything this session
reported so far), so re-persisting a checkpoint never double counts.
"""

import logging
import re
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..exceptions import AgentCallFailedError, BudgetExceededError
from ..models.feature import ExecutionStats, FeatureState, TaskKind
from ..prompts.template import ExecutionConfig
from ..services.agent_service import AgentService
from ..services.agent_stream import AgentChunk, ProgressChunk, ResultChunk, TurnChunk, Usage
from .constants import INTERRUPTED_MESSAGE
from .state_store import StateStore

logger = logging.getLogger(__name__)

PULL_REQUEST_RE = re.compile(r"https://github\.com/[\w.-]+/[\w.-]+/pull/\d+")

ChunkCallback = Callable[[AgentChunk], None]


class _Session:
    """Totals reported by the agent during one run."""

    def __init__(self) -> None:
        # turn id -> usage; repeated messages of one turn are merged
        self.turns: "OrderedDict[str, Usage]" = OrderedDict()
        self.result: Optional[ResultChunk] = None

    def add_turn(self, chunk: TurnChunk) -> None:
        seen = self.turns.get(chunk.turn_id)
        if seen is None:
            self.turns[chunk.turn_id] = chunk.usage
            return
        self.turns[chunk.turn_id] = Usage(
            input_tokens=max(seen.input_tokens, chunk.usage.input_tokens),
            output_tokens=max(seen.output_tokens, chunk.usage.output_tokens),
            total_cost_usd=max(seen.total_cost_usd, chunk.usage.total_cost_usd),
        )

    @property
    def turn_count(self) -> int:
        count = len(self.turns)
        if self.result:
            count = max(count, self.result.num_turns)
        return count

    def totals(self) -> Usage:
        usage = Usage(
            input_tokens=sum(u.input_tokens for u in self.turns.values()),
            output_tokens=sum(u.output_tokens for u in self.turns.values()),
            total_cost_usd=sum(u.total_cost_usd for u in self.turns.values()),
        )
        if self.result:
            final = self.result.usage
            usage.input_tokens = max(usage.input_tokens, final.input_tokens)
            usage.output_tokens = max(usage.output_tokens, final.output_tokens)
            # checkpointed totals never decrease, so a billed total below the
            # per-turn estimates keeps the estimate
            usage.total_cost_usd = max(usage.total_cost_usd, final.total_cost_usd)
        return usage


class ExecutionDriver:
    """Drives one run of a feature task and persists its checkpoints."""

    def __init__(
        self,
        store: StateStore,
        agent: AgentService,
        max_cost_usd: Optional[float] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ):
        """Initialize the driver.

        Args:
            store: State store the record is persisted through
            agent: Agent service producing the chunk stream
            max_cost_usd: Dollar budget for one run, None for no limit
            on_chunk: Called with every chunk, e.g. for display
        """
        self.store = store
        self.agent = agent
        self.max_cost_usd = max_cost_usd
        self.on_chunk = on_chunk

    def run(
        self,
        record: FeatureState,
        config: ExecutionConfig,
        prompt: str,
        cwd: Optional[Union[str, Path]] = None,
    ) -> FeatureState:
        """Run the task to completion, failure or interruption.

        Returns:
            The completed record

        Raises:
            BudgetExceededError: A turn or cost budget was hit; record is failed
            AgentCallFailedError: The agent call failed; record is failed
            KeyboardInterrupt: The run was interrupted; record stays in_progress
        """
        feature_id = record.feature_id
        baseline = record.execution.model_copy(deep=True)
        session = _Session()
        plan_stamp = self._plan_stamp(record.feature_id)

        record.mark_in_progress(f"running {record.task.kind.value}")
        self.store.save(record)
        logger.info(
            f"Running {record.task.kind.value} for feature {feature_id} "
            f"(turns so far: {baseline.turns}, max turns: {config.max_turns})"
        )

        try:
            for chunk in self.agent.stream(prompt, config, cwd):
                if self.on_chunk:
                    self.on_chunk(chunk)

                if isinstance(chunk, TurnChunk):
                    session.add_turn(chunk)
                    self._checkpoint(record, baseline, session, f"turn {session.turn_count}")
                    self._check_budget(record, config, session)
                elif isinstance(chunk, ProgressChunk):
                    self._checkpoint(
                        record, baseline, session, _describe_progress(chunk),
                        phase=chunk.phase, step=chunk.step, message=chunk.note,
                    )
                elif isinstance(chunk, ResultChunk):
                    session.result = chunk
                    self._checkpoint(record, baseline, session, "result")
                    self._check_cost(record, session)
        except KeyboardInterrupt:
            self.agent.close()
            self._checkpoint(record, baseline, session, INTERRUPTED_MESSAGE, message=INTERRUPTED_MESSAGE)
            logger.warning(f"Run of feature {feature_id} interrupted; state kept for --resume")
            raise
        except BudgetExceededError:
            self.agent.close()
            raise
        except Exception as e:
            self.agent.close()
            self._fail(record, f"agent call failed: {e}")
            raise AgentCallFailedError(f"Agent call failed: {e}", feature_id) from e

        result = session.result
        if result is None:
            self._fail(record, "agent call failed: stream ended without a result")
            raise AgentCallFailedError("Agent stream ended without a result", feature_id)

        if result.is_error:
            if result.subtype == "error_max_turns":
                message = f"budget exceeded: max turns ({config.max_turns}) reached"
                self._fail(record, message)
                raise BudgetExceededError(message, feature_id)
            message = f"agent call failed: {result.error or result.subtype}"
            self._fail(record, message)
            raise AgentCallFailedError(message, feature_id)

        if record.task.kind is TaskKind.PLANNING:
            self._save_plan(record, result.content, plan_stamp)

        record.mark_completed(self._build_result(record, result))
        self.store.save(record)
        logger.info(
            f"Feature {feature_id} {record.task.kind.value} completed "
            f"({record.execution.turns} turns, ${record.execution.cost.total_cost_usd:.4f})"
        )
        return record

    def _checkpoint(
        self,
        record: FeatureState,
        baseline: ExecutionStats,
        session: _Session,
        description: str,
        phase: Optional[str] = None,
        step: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        totals = session.totals()
        stats = baseline.plus(
            turns=session.turn_count,
            input_tokens=totals.input_tokens,
            output_tokens=totals.output_tokens,
            total_cost_usd=totals.total_cost_usd,
        )
        record.record_progress(
            stats=stats, phase=phase, step=step, message=message, checkpoint=description,
        )
        self.store.save(record)
        logger.debug(f"Checkpoint {record.feature_id}: {description} (turns={stats.turns})")

    def _check_budget(self, record: FeatureState, config: ExecutionConfig, session: _Session) -> None:
        if session.turn_count > config.max_turns:
            self._exceeded(record, f"budget exceeded: {session.turn_count} turns > max turns {config.max_turns}")
        self._check_cost(record, session)

    def _check_cost(self, record: FeatureState, session: _Session) -> None:
        cost = session.totals().total_cost_usd
        if self.max_cost_usd is not None and cost > self.max_cost_usd:
            self._exceeded(record, f"budget exceeded: ${cost:.4f} > max cost ${self.max_cost_usd:.2f}")

    def _exceeded(self, record: FeatureState, message: str) -> None:
        self._fail(record, message)
        raise BudgetExceededError(message, record.feature_id)

    def _fail(self, record: FeatureState, message: str) -> None:
        record.mark_failed(message)
        self.store.save(record)
        logger.error(f"Feature {record.feature_id} failed: {message}")

    def _plan_stamp(self, feature_id: str) -> Optional[Tuple[int, int]]:
        path = self.store.plan_path(feature_id)
        if not path.is_file():
            return None
        stat = path.stat()
        return stat.st_ino, stat.st_mtime_ns

    def _save_plan(
        self, record: FeatureState, content: str, stamp_before: Optional[Tuple[int, int]]
    ) -> None:
        """Keep the planning output unless the agent wrote the plan file itself."""
        path = self.store.plan_path(record.feature_id)
        stamp = self._plan_stamp(record.feature_id)
        if stamp is not None and stamp != stamp_before:
            return
        if content.strip():
            self.store.save_plan(record.feature_id, content)
            logger.info(f"Saved plan to {path}")

    def _build_result(self, record: FeatureState, result: ResultChunk) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "summary": result.content,
            "turns": record.execution.turns,
            "total_cost_usd": record.execution.cost.total_cost_usd,
        }
        match = PULL_REQUEST_RE.search(result.content or "")
        if match:
            payload["pull_request"] = match.group(0)
        if result.session_id:
            payload["session_id"] = result.session_id
        return payload


def _describe_progress(chunk: ProgressChunk) -> str:
    parts = []
    if chunk.phase:
        parts.append(f"phase {chunk.phase}")
    if chunk.step:
        parts.append(f"step {chunk.step}")
    return " / ".join(parts) or "progress"
