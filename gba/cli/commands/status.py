"""Status command."""

import click
from rich.console import Console

from ...core.runner import normalize_feature_id
from ...exceptions import CorruptStateError
from ..helpers import fail, format_feature_table, format_phase, format_state, get_store, load_project


@click.command()
@click.argument('feature_id', required=False)
@click.pass_context
def status(ctx, feature_id):
    """Show the state of all features, or details of one"""
    load_project(ctx)
    store = get_store(ctx)

    if not feature_id:
        records = store.list_records()
        if not records:
            click.echo("No feature tasks found")
            return
        click.echo(format_feature_table(records))
        return

    try:
        feature_id = normalize_feature_id(feature_id)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='FEATURE_ID')
    try:
        record = store.load(feature_id)
    except CorruptStateError as e:
        fail(e)
    if record is None:
        fail(f"No state found for feature {feature_id}")

    console = Console()
    console.print(f"\n[bold]Feature {record.feature_id}: {record.feature.name}[/bold]")
    if record.feature.description:
        console.print(f"   Description: {record.feature.description}")
    click.echo(f"   Kind: {record.task.kind.value} (template: {record.task.template})")
    click.echo(f"   State: {format_state(record.state)}")
    phase = format_phase(record)
    if phase:
        click.echo(f"   Position: {phase}")
    if record.status.message:
        click.echo(f"   Message: {record.status.message}")
    click.echo(f"   Turns: {record.execution.turns}")
    cost = record.execution.cost
    click.echo(f"   Tokens: {cost.input_tokens} in / {cost.output_tokens} out")
    click.echo(f"   Cost: ${cost.total_cost_usd:.4f}")
    if record.context.worktree:
        click.echo(f"   Worktree: {record.context.worktree.path} ({record.context.worktree.branch})")
    if record.context.last_checkpoint:
        checkpoint = record.context.last_checkpoint
        click.echo(f"   Last checkpoint: {checkpoint.description} at {checkpoint.timestamp:%Y-%m-%d %H:%M:%S}")
    click.echo(f"   Created: {record.timestamps.created_at:%Y-%m-%d %H:%M:%S}")
    click.echo(f"   Updated: {record.timestamps.updated_at:%Y-%m-%d %H:%M:%S}")
    if record.timestamps.completed_at:
        click.echo(f"   Completed: {record.timestamps.completed_at:%Y-%m-%d %H:%M:%S}")
    if record.result:
        if record.result.get("pull_request"):
            click.echo(f"   PR: {record.result['pull_request']}")
        summary = (record.result.get("summary") or "").strip()
        if summary:
            click.echo(f"\n{summary}")
