import logging
from types import SimpleNamespace

import pytest
from click.testing import CliRunner

from gba.core.constants import DATA_DIR_NAME, FEATURES_DIR_NAME
from gba.core.state_store import StateStore
from gba.models.config import ProjectConfig
from gba.services.agent_stream import ProgressChunk, ResultChunk, TurnChunk, Usage
from gba.utils.config_manager import ConfigManager


class FakeAgent:
    """Agent service that yields a scripted chunk sequence.

    ``script`` items are chunks, or exceptions to raise at that point.
    """

    def __init__(self, script=None):
        self.script = list(script or [])
        self.calls = []
        self.closed = 0

    def stream(self, prompt, config, cwd=None):
        self.calls.append({"prompt": prompt, "config": config, "cwd": cwd})
        for item in self.script:
            if isinstance(item, BaseException):
                raise item
            yield item

    def close(self):
        self.closed += 1


def turn(turn_id, text="", input_tokens=10, output_tokens=5, cost=0.0):
    return TurnChunk(
        turn_id=turn_id,
        content=text,
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_cost_usd=cost),
    )


def result(text="done", num_turns=0, cost=0.01, input_tokens=0, output_tokens=0, **kwargs):
    return ResultChunk(
        content=text,
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens, total_cost_usd=cost),
        num_turns=num_turns,
        **kwargs,
    )


def progress(phase=None, step=None):
    return ProgressChunk(phase=phase, step=step)


@pytest.fixture
def cli_runner():
    """Provides a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def project_dir(tmp_path):
    """Creates an initialized gba project with a little source code."""
    project_path = tmp_path / "project"
    (project_path / "src").mkdir(parents=True)
    (project_path / "src" / "main.py").write_text("print('Hello, World!')")
    (project_path / "README.md").write_text("# Project")

    config_manager = ConfigManager(project_path)
    config_manager.features_dir().mkdir(parents=True)
    config_manager.save(ProjectConfig())
    return project_path


@pytest.fixture
def store(project_dir):
    return StateStore(project_dir / DATA_DIR_NAME / FEATURES_DIR_NAME)


@pytest.fixture
def fake_agent():
    """Factory for scripted fake agents."""
    return FakeAgent


@pytest.fixture
def chunks():
    """Builders for scripted agent chunks: chunks.turn, chunks.result, chunks.progress."""
    return SimpleNamespace(turn=turn, result=result, progress=progress)


@pytest.fixture(autouse=True)
def mock_claude_executable(monkeypatch):
    """Point the agent at a fixed executable path for all tests."""
    monkeypatch.setenv("GBA_CLAUDE_PATH", "/usr/local/bin/claude")
    monkeypatch.delenv("GBA_LOG_LEVEL", raising=False)
    return "/usr/local/bin/claude"


@pytest.fixture(autouse=True)
def reset_gba_logger():
    """Drop handlers commands attach to the gba logger."""
    yield
    logger = logging.getLogger('gba')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
