"""Git service for repository metadata and feature worktrees."""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from .exceptions import BranchNotFoundError, GitServiceError

logger = logging.getLogger(__name__)


class GitService:
    """Service for Git operations with clean abstractions."""

    def __init__(self, repo_path: Path):
        """Initialize Git service.

        Args:
            repo_path: Path to the git repository
        """
        self.repo_path = Path(repo_path)
        if not self._is_git_repo():
            raise GitServiceError(f"{self.repo_path} is not a git repository")

    def _is_git_repo(self) -> bool:
        try:
            self._run_git_command(["rev-parse", "--git-dir"])
            return True
        except GitServiceError:
            return False

    def _run_git_command(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a git command in the repository.

        Raises:
            GitServiceError: If the command fails or git is unavailable
        """
        cmd = ["git"] + args
        try:
            return subprocess.run(
                cmd,
                cwd=self.repo_path,
                check=check,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            error_msg = e.stderr.strip() if e.stderr else str(e)
            raise GitServiceError(f"Git command failed: {error_msg}") from e
        except OSError as e:
            raise GitServiceError(f"Unable to run git: {e}") from e

    def branch_exists_local(self, branch_name: str) -> bool:
        try:
            result = self._run_git_command(["branch", "--list", branch_name], check=False)
            return bool(result.stdout.strip())
        except GitServiceError:
            return False

    def get_current_branch(self) -> str:
        """Get the current branch name.

        Raises:
            GitServiceError: If HEAD is detached or the branch cannot be read
        """
        result = self._run_git_command(["branch", "--show-current"])
        branch = result.stdout.strip()
        if not branch:
            raise GitServiceError("Unable to determine current branch")
        return branch

    def get_remote_url(self, remote: str = "origin") -> Optional[str]:
        """Get the URL of a remote, or None when it is not configured."""
        result = self._run_git_command(["remote", "get-url", remote], check=False)
        url = result.stdout.strip()
        return url or None

    def list_worktrees(self) -> List[Path]:
        """Paths of all worktrees attached to the repository."""
        result = self._run_git_command(["worktree", "list", "--porcelain"])
        paths = []
        for line in result.stdout.splitlines():
            if line.startswith("worktree "):
                paths.append(Path(line[len("worktree "):]).resolve())
        return paths

    def worktree_exists(self, path: Path) -> bool:
        return Path(path).resolve() in self.list_worktrees()

    def add_worktree(self, path: Path, branch: str, base: Optional[str] = None) -> Path:
        """Create a worktree at ``path`` on ``branch``.

        An existing worktree at the path is reused. The branch is created
        from ``base`` (default HEAD) unless it already exists.

        Raises:
            BranchNotFoundError: If ``base`` names a branch that does not exist
            GitServiceError: If the worktree cannot be created
        """
        path = Path(path)
        if self.worktree_exists(path):
            logger.debug(f"Reusing worktree {path}")
            return path

        path.parent.mkdir(parents=True, exist_ok=True)
        if self.branch_exists_local(branch):
            args = ["worktree", "add", str(path), branch]
        else:
            if base and not self.branch_exists_local(base):
                raise BranchNotFoundError(f"Branch '{base}' not found locally")
            args = ["worktree", "add", "-b", branch, str(path)]
            if base:
                args.append(base)

        self._run_git_command(args)
        logger.info(f"Created worktree {path} on branch {branch}")
        return path
