"""CLI Helper Functions for gba.

This module provides reusable helper functions for CLI commands:
- Project context and configuration loading
- Consistent error reporting and exit codes
- Table formatting for feature records
"""

import os
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import click
from tabulate import tabulate

from gba.core.constants import DATA_DIR_NAME, FEATURES_DIR_NAME, LOG_LEVEL_ENV
from gba.core.state_store import StateStore
from gba.exceptions import ConfigError, GbaError
from gba.models.config import ProjectConfig
from gba.models.feature import FeatureState, TaskState
from gba.prompts.manager import PromptManager
from gba.services.exceptions import ServiceError
from gba.utils.config_manager import ConfigManager
from gba.utils.logging_config import configure_logging

EXIT_ERROR = 1
EXIT_DECISION_REQUIRED = 2

# Reported as a plain error message by every command
HANDLED_ERRORS = (GbaError, ServiceError)

STATE_COLORS = {
    TaskState.PENDING: 'white',
    TaskState.IN_PROGRESS: 'yellow',
    TaskState.COMPLETED: 'green',
    TaskState.FAILED: 'red',
}


def get_project_context(ctx: click.Context) -> Tuple[Path, Path]:
    """Get project root and data directory from the ``--path`` option.

    Returns:
        Tuple of (project_root, data_dir)
    """
    project_root = ctx.obj['project_root']
    return project_root, project_root / DATA_DIR_NAME


def load_project(ctx: click.Context) -> Tuple[ConfigManager, ProjectConfig]:
    """Load the project configuration, exit with an error if it is missing.

    Returns:
        Tuple of (config_manager, config)
    """
    project_root, _ = get_project_context(ctx)
    config_manager = ConfigManager(project_root)
    try:
        config = config_manager.load()
    except ConfigError as e:
        fail(e)
    _configure_project_logging(ctx, config_manager, config)
    return config_manager, config


def _configure_project_logging(ctx: click.Context, config_manager: ConfigManager, config: ProjectConfig) -> None:
    """Apply the logging section; --verbose and GBA_LOG_LEVEL take precedence."""
    settings = config.logging
    level = "debug" if ctx.obj.get("verbose") else (os.environ.get(LOG_LEVEL_ENV) or settings.level)
    log_file = None
    if settings.file:
        log_file = Path(settings.file).expanduser()
        if not log_file.is_absolute():
            log_file = config_manager.project_root / log_file
    configure_logging(level, log_file=log_file, to_console=settings.log_to_console, fmt=settings.format)


def get_store(ctx: click.Context) -> StateStore:
    _, data_dir = get_project_context(ctx)
    return StateStore(data_dir / FEATURES_DIR_NAME)


def get_prompt_manager(config_manager: ConfigManager, config: ProjectConfig) -> PromptManager:
    return PromptManager(config_manager.templates_dir(), use_bundled=config.prompts.use_bundled)


def fail(error: Any, code: int = EXIT_ERROR) -> None:
    """Print an error in red and exit."""
    click.echo(click.style(f"Error: {error}", fg='red'), err=True)
    sys.exit(code)


def format_state(state: TaskState) -> str:
    return click.style(state.value.upper(), fg=STATE_COLORS.get(state, 'white'))


def format_phase(record: FeatureState) -> str:
    parts = [p for p in (record.status.current_phase, record.status.current_step) if p]
    return " / ".join(parts)


def format_pr_display(pr_url: Optional[str]) -> str:
    if not pr_url:
        return ""
    pr_parts = pr_url.split('/')
    if len(pr_parts) >= 2 and pr_parts[-2] == 'pull':
        return click.style(f"PR #{pr_parts[-1]}", fg='cyan')
    return click.style("PR", fg='cyan')


def format_feature_table(records: List[FeatureState], max_name_length: int = 30) -> str:
    """Format feature records as a table."""
    headers = ["ID", "FEATURE", "KIND", "STATE", "PHASE", "TURNS", "COST", "UPDATED", "PR"]
    rows = []
    for record in records:
        name = record.feature.name
        if len(name) > max_name_length:
            name = name[:max_name_length - 3] + "..."
        pr_url = (record.result or {}).get("pull_request")
        rows.append([
            record.feature_id,
            name,
            record.task.kind.value,
            format_state(record.state),
            format_phase(record),
            record.execution.turns,
            f"${record.execution.cost.total_cost_usd:.4f}",
            record.timestamps.updated_at.strftime("%Y-%m-%d %H:%M"),
            format_pr_display(pr_url),
        ])
    return tabulate(rows, headers=headers, tablefmt="simple")


def print_table(headers: List[str], rows: List[List[Any]], tablefmt: str = "simple") -> None:
    click.echo(tabulate(rows, headers=headers, tablefmt=tablefmt))


__all__ = [
    'EXIT_ERROR',
    'EXIT_DECISION_REQUIRED',
    'get_project_context',
    'load_project',
    'get_store',
    'get_prompt_manager',
    'fail',
    'HANDLED_ERRORS',
    'format_state',
    'format_phase',
    'format_pr_display',
    'format_feature_table',
    'print_table',
]
