"""Tests for repository context scanning."""

from pathlib import Path

import pytest

from gba.core.context_builder import detect_language, read_file, scan_repository, should_exclude


@pytest.mark.parametrize("name, language", [
    ("main.py", "python"),
    ("lib.RS", "rust"),
    ("Dockerfile", "dockerfile"),
    ("config.yml", "yaml"),
    ("LICENSE", "unknown"),
])
def test_detect_language(name, language):
    assert detect_language(Path(name)) == language


@pytest.mark.parametrize("path, excluded", [
    ("node_modules/pkg/index.js", True),
    ("src/node_modules/x.js", True),
    ("target/", True),
    ("src/app.log", True),
    ("src/main.py", False),
    ("targets/file.txt", False),
])
def test_should_exclude(path, excluded):
    assert should_exclude(path, ["node_modules/", "target/", "*.log"]) is excluded


class TestScanRepository:

    @pytest.fixture
    def repo(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.py").write_text("print('hi')")
        (tmp_path / "src" / "util.ts").write_text("export {}")
        (tmp_path / "README.md").write_text("# Repo")
        (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
        (tmp_path / "node_modules" / "pkg" / "index.js").write_text("")
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "HEAD").write_text("ref: refs/heads/main")
        (tmp_path / "big.bin").write_bytes(b"x" * 2048)
        return tmp_path

    def test_lists_files_with_language(self, repo):
        files = scan_repository(repo, exclude_patterns=["node_modules/"], max_file_size=1024)

        assert [f.to_dict() for f in files] == [
            {"path": "README.md", "language": "markdown", "content": "# Repo"},
            {"path": "src/main.py", "language": "python", "content": "print('hi')"},
            {"path": "src/util.ts", "language": "typescript", "content": "export {}"},
        ]

    def test_max_files(self, repo):
        files = scan_repository(repo, exclude_patterns=["node_modules/"], max_files=2)
        assert len(files) == 2

    def test_empty_directory(self, tmp_path):
        assert scan_repository(tmp_path) == []

    def test_binary_files_are_skipped(self, tmp_path):
        (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe")
        (tmp_path / "notes.txt").write_text("remember the tests")

        files = scan_repository(tmp_path)

        assert [(f.path, f.content) for f in files] == [("notes.txt", "remember the tests")]


def test_read_file_limits_size(tmp_path):
    path = tmp_path / "data.txt"
    path.write_text("x" * 10)

    assert read_file(path, max_size=10) == "x" * 10
    assert read_file(path, max_size=9) is None
    assert read_file(tmp_path / "missing.txt", max_size=10) is None
