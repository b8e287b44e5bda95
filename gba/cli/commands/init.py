"""Init command."""

import logging
import sys
from typing import Optional

import click
from rich.console import Console

from ...core.constants import FEATURES_README, GITIGNORE_ENTRY
from ...models.config import ProjectConfig, ProjectMetadata, RepositoryMetadata
from ...services.exceptions import GitServiceError
from ...services.git_service import GitService
from ...utils.config_manager import ConfigManager
from ..helpers import get_project_context

logger = logging.getLogger(__name__)


def _detect_git_metadata(project_root) -> tuple:
    """Best-effort (remote url, current branch) of the project repository."""
    try:
        git = GitService(project_root)
    except GitServiceError:
        return None, None
    url = git.get_remote_url()
    try:
        branch = git.get_current_branch()
    except GitServiceError:
        branch = None
    return url, branch


def _ensure_gitignore_entry(project_root) -> bool:
    """Add the features directory to .gitignore. Returns True if it was added."""
    gitignore = project_root / ".gitignore"
    lines = gitignore.read_text(encoding='utf-8').splitlines() if gitignore.exists() else []
    if GITIGNORE_ENTRY in (line.strip() for line in lines):
        return False
    lines.append(GITIGNORE_ENTRY)
    gitignore.write_text("\n".join(lines) + "\n", encoding='utf-8')
    return True


@click.command()
@click.option('--main-branch', help='Main branch of the repository (detected from git by default)')
@click.option('--repo-url', help='Repository URL (detected from the origin remote by default)')
@click.pass_context
def init(ctx, main_branch: Optional[str], repo_url: Optional[str]):
    """Initialize a gba project in the current directory"""
    console = Console()
    project_root, data_dir = get_project_context(ctx)

    if data_dir.exists():
        console.print("[yellow]gba project already initialized[/yellow]")
        return

    detected_url, detected_branch = _detect_git_metadata(project_root)
    main_branch = main_branch or detected_branch or "main"
    repo_url = repo_url or detected_url or "unknown"

    console.print(f"[cyan]Initializing gba project at {project_root}[/cyan]")
    console.print(f"  Main branch: {main_branch}")
    console.print(f"  Repository: {repo_url}")

    config_manager = ConfigManager(project_root)
    try:
        config_manager.default_templates_dir().mkdir(parents=True, exist_ok=True)
        features_dir = config_manager.features_dir()
        features_dir.mkdir(parents=True, exist_ok=True)
        (features_dir / "README.md").write_text(FEATURES_README, encoding='utf-8')

        config = ProjectConfig(
            project=ProjectMetadata(
                name=project_root.name,
                repository=RepositoryMetadata(url=repo_url, main_branch=main_branch),
            )
        )
        config_manager.save(config)
        added = _ensure_gitignore_entry(project_root)
    except OSError as e:
        click.echo(click.style(f"Error: Failed to initialize project: {e}", fg='red'), err=True)
        sys.exit(1)

    logger.info(f"Initialized gba project at {project_root}")
    console.print(f"[green]✅ Created {config_manager.config_file}[/green]")
    if added:
        console.print(f"[green]✅ Added {GITIGNORE_ENTRY} to .gitignore[/green]")
    console.print("\nNext: gba run --feature <name> --kind planning")
