"""Repository context for prompt rendering.

Collects the source files (path, language and text content) handed to
templates as the ``files`` variable. Files that are too large or not UTF-8
text are left out.
"""

import fnmatch
import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

LANGUAGES = {
    "rs": "rust",
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "java": "java",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "hpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "go": "go",
    "rb": "ruby",
    "php": "php",
    "swift": "swift",
    "kt": "kotlin",
    "kts": "kotlin",
    "scala": "scala",
    "cs": "csharp",
    "fs": "fsharp",
    "fsi": "fsharp",
    "fsx": "fsharp",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "sass": "scss",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
    "md": "markdown",
    "txt": "text",
    "sh": "shell",
    "bash": "bash",
    "zsh": "zsh",
    "fish": "fish",
    "sql": "sql",
    "xml": "xml",
    "graphql": "graphql",
    "gql": "graphql",
    "dockerfile": "dockerfile",
}


@dataclass
class FileContext:
    path: str
    language: str
    content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "language": self.language, "content": self.content}


def detect_language(path: Path) -> str:
    """Guess a file's language from its extension."""
    path = Path(path)
    if path.name.lower() == "dockerfile":
        return "dockerfile"
    return LANGUAGES.get(path.suffix.lstrip(".").lower(), "unknown")


def read_file(path: Path, max_size: int) -> Optional[str]:
    """Read a text file of at most ``max_size`` bytes, or None if it is skipped."""
    try:
        if path.stat().st_size > max_size:
            return None
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Skipping {path}: {e}")
        return None


def should_exclude(relative_path: str, exclude_patterns: Iterable[str]) -> bool:
    """Check a repository-relative path against the exclude patterns.

    A pattern ending in ``/`` matches a directory at any depth; any other
    pattern is a glob matched against the path and the file name.
    """
    posix = PurePosixPath(relative_path.replace(os.sep, "/"))
    parts = posix.parts
    for pattern in exclude_patterns:
        if pattern.endswith("/"):
            name = pattern.rstrip("/")
            if any(fnmatch.fnmatch(part, name) for part in parts):
                return True
        elif fnmatch.fnmatch(str(posix), pattern) or fnmatch.fnmatch(posix.name, pattern):
            return True
    return False


def scan_repository(
    root: Path,
    exclude_patterns: Iterable[str] = (),
    max_file_size: int = 1_048_576,
    max_files: int = 100,
) -> List[FileContext]:
    """List up to ``max_files`` files under ``root``, sorted by path.

    Hidden directories, files larger than ``max_file_size`` bytes and files
    that cannot be read as UTF-8 text are skipped.
    """
    patterns = list(exclude_patterns)
    files: List[FileContext] = []

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)
        rel_dir = "" if rel_dir == "." else rel_dir

        dirnames[:] = sorted(
            d for d in dirnames
            if not d.startswith(".") and not should_exclude(os.path.join(rel_dir, d) + "/", patterns)
        )

        for filename in sorted(filenames):
            rel_path = os.path.join(rel_dir, filename)
            if should_exclude(rel_path, patterns):
                continue
            content = read_file(Path(dirpath, filename), max_file_size)
            if content is None:
                continue

            files.append(FileContext(
                path=rel_path.replace(os.sep, "/"),
                language=detect_language(Path(filename)),
                content=content,
            ))
            if len(files) >= max_files:
                logger.debug(f"Stopped scanning {root} at {max_files} files")
                return files

    return files
