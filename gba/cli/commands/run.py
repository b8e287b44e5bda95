"""Run command."""

import logging
import signal
import sys
from typing import Optional

import click
import questionary
from rich.console import Console

from ...core.resume import ResumeAction, ResumeDecision, RetryChoice, RunRequest
from ...core.runner import FeatureRunner, RunOutcome, normalize_feature_id
from ...models.feature import TaskKind
from ...services.agent_service import ClaudeCliAgent
from ..helpers import (
    EXIT_DECISION_REQUIRED,
    HANDLED_ERRORS,
    fail,
    get_project_context,
    get_prompt_manager,
    load_project,
)
from ..helpers.stream_display import StreamDisplay

logger = logging.getLogger(__name__)

INTERRUPTED_EXIT_CODE = 130


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt()


def _ask_retry_or_fresh(decision: ResumeDecision) -> Optional[RetryChoice]:
    """Ask whether to retry a failed task or start it over."""
    record = decision.record
    answer = questionary.select(
        f"Feature {record.feature_id} ({record.task.kind.value}) failed: {decision.reason}",
        choices=[
            questionary.Choice("Retry from the last checkpoint", value="retry"),
            questionary.Choice("Start fresh (archives the current record)", value="fresh"),
            questionary.Choice("Cancel", value="cancel"),
        ],
    ).ask()
    if answer in (None, "cancel"):
        return None
    return RetryChoice(answer)


def _is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _report(console: Console, outcome: RunOutcome) -> None:
    record = outcome.record
    feature_id = outcome.feature_id

    if outcome.action == ResumeAction.ASK_RETRY_OR_FRESH:
        message = record.status.message if record else "previous run failed"
        click.echo(click.style(f"Feature {feature_id} failed: {message}", fg='red'), err=True)
        click.echo("Rerun with --retry to continue from the last checkpoint, "
                   "or --fresh to start over.", err=True)
        sys.exit(EXIT_DECISION_REQUIRED)

    result = outcome.result or {}
    if outcome.action == ResumeAction.REPORT_COMPLETION:
        console.print(f"[green]Feature {feature_id} {record.task.kind.value} already completed[/green]")
    else:
        verb = "Resumed and completed" if outcome.resumed else "Completed"
        console.print(f"\n[green]✅ {verb} {record.task.kind.value} for feature {feature_id}[/green]")

    console.print(f"   Turns: {record.execution.turns}")
    console.print(f"   Cost: ${record.execution.cost.total_cost_usd:.4f}")
    if result.get("pull_request"):
        console.print(f"   PR: {result['pull_request']}")
    if record.context.worktree:
        console.print(f"   Worktree: {record.context.worktree.path} ({record.context.worktree.branch})")


@click.command()
@click.option('--feature', '-f', required=True, help='Feature name, e.g. add-auth')
@click.option('--kind', '-k', required=True,
              type=click.Choice([k.value for k in TaskKind]), help='Task kind to run')
@click.option('--id', 'feature_id', help='Feature id (derived from the name by default)')
@click.option('--description', '-d', help='What the feature is about')
@click.option('--resume', is_flag=True, help='Continue an interrupted or failed task')
@click.option('--retry', is_flag=True, help='Retry a failed task without asking')
@click.option('--fresh', is_flag=True, help='Archive any existing record and start over')
@click.pass_context
def run(ctx, feature, kind, feature_id, description, resume, retry, fresh):
    """Run a planning, implementation or verification task for a feature"""
    if fresh and (resume or retry):
        raise click.UsageError("--fresh cannot be combined with --resume or --retry")

    if feature_id is not None:
        try:
            feature_id = normalize_feature_id(feature_id)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='--id')

    config_manager, config = load_project(ctx)
    project_root, _ = get_project_context(ctx)
    console = Console()

    runner = FeatureRunner(
        project_root,
        config,
        ClaudeCliAgent(model=config.agent.model),
        prompts=get_prompt_manager(config_manager, config),
        on_chunk=StreamDisplay(verbose=ctx.obj.get('verbose', False)),
    )
    request = RunRequest(
        feature_name=feature,
        kind=TaskKind(kind),
        feature_id=feature_id,
        description=description,
        resume=resume,
        retry=retry,
        fresh=fresh,
    )

    # SIGTERM gets the same final checkpoint as Ctrl-C
    previous = signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)
    try:
        outcome = runner.run(request, choose=_ask_retry_or_fresh if _is_interactive() else None)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. Progress was saved; rerun with --resume to continue.[/yellow]")
        sys.exit(INTERRUPTED_EXIT_CODE)
    except HANDLED_ERRORS as e:
        fail(e)
    finally:
        signal.signal(signal.SIGTERM, previous if previous is not None else signal.SIG_DFL)

    _report(console, outcome)
