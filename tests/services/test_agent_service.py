"""Tests for the claude CLI agent adapter."""

import io
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from gba.core.driver import ExecutionDriver
from gba.exceptions import BudgetExceededError
from gba.models.feature import FeatureState, TaskKind, TaskState
from gba.prompts.template import ExecutionConfig, SystemPrompt
from gba.services.agent_service import ClaudeCliAgent
from gba.services.agent_stream import ResultChunk, TurnChunk
from gba.services.exceptions import AgentServiceError


def stream_lines(*messages, trailing=()):
    lines = [json.dumps(m) + "\n" for m in messages]
    return io.StringIO("".join(lines) + "".join(trailing))


def mock_process(stdout, returncode=0):
    process = MagicMock()
    process.stdout = stdout
    process.wait.return_value = returncode
    process.poll.return_value = returncode
    process.pid = 4242
    return process


ASSISTANT = {"type": "assistant", "message": {"id": "m1", "content": [{"type": "text", "text": "hi"}],
                                               "usage": {"input_tokens": 3, "output_tokens": 2}}}
RESULT = {"type": "result", "subtype": "success", "result": "done", "num_turns": 1, "total_cost_usd": 0.01}


class TestBuildCommand:

    def test_preset_without_text(self):
        agent = ClaudeCliAgent()
        config = ExecutionConfig(system_prompt=SystemPrompt.preset(), tools=(), max_turns=100)

        cmd = agent.build_command("do it", config)

        assert cmd == [
            "/usr/local/bin/claude", "-p", "do it",
            "--output-format", "stream-json", "--verbose", "--max-turns", "100",
        ]

    def test_preset_with_text_and_tools(self):
        agent = ClaudeCliAgent(model="claude-sonnet-4-20250514")
        config = ExecutionConfig(
            system_prompt=SystemPrompt.preset("Plan only"), tools=("Read", "Grep"), max_turns=50,
        )

        cmd = agent.build_command("plan", config)

        assert cmd[cmd.index("--append-system-prompt") + 1] == "Plan only"
        assert cmd[cmd.index("--allowedTools") + 1] == "Read,Grep"
        assert cmd[cmd.index("--model") + 1] == "claude-sonnet-4-20250514"
        assert "--system-prompt" not in cmd

    def test_literal_system_prompt(self):
        config = ExecutionConfig(system_prompt=SystemPrompt.literal("You review code"), tools=("Read",))

        cmd = ClaudeCliAgent().build_command("verify", config)

        assert cmd[cmd.index("--system-prompt") + 1] == "You review code"
        assert "--append-system-prompt" not in cmd

    def test_executable_resolution(self, monkeypatch):
        assert ClaudeCliAgent("/opt/claude").executable == "/opt/claude"
        monkeypatch.delenv("GBA_CLAUDE_PATH")
        with patch("gba.services.agent_service.shutil.which", return_value=None):
            assert ClaudeCliAgent().executable == "claude"


class TestStream:

    CONFIG = ExecutionConfig(system_prompt=SystemPrompt.preset(), max_turns=10)

    @patch("gba.services.agent_service.subprocess.Popen")
    def test_yields_chunks(self, mock_popen, tmp_path):
        mock_popen.return_value = mock_process(stream_lines(ASSISTANT, RESULT))
        agent = ClaudeCliAgent()

        chunks = list(agent.stream("hello", self.CONFIG, cwd=tmp_path))

        assert [type(c) for c in chunks] == [TurnChunk, ResultChunk]
        args, kwargs = mock_popen.call_args
        assert args[0][:3] == ["/usr/local/bin/claude", "-p", "hello"]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["stdout"] == subprocess.PIPE
        assert agent.process is None

    @patch("gba.services.agent_service.subprocess.Popen", side_effect=FileNotFoundError())
    def test_missing_executable(self, mock_popen):
        with pytest.raises(AgentServiceError, match="GBA_CLAUDE_PATH"):
            list(ClaudeCliAgent().stream("hello", self.CONFIG))

    @patch("gba.services.agent_service.subprocess.Popen")
    def test_nonzero_exit_without_result(self, mock_popen):
        mock_popen.return_value = mock_process(
            stream_lines(trailing=["Error: invalid API key\n"]), returncode=1,
        )

        with pytest.raises(AgentServiceError, match="code 1: Error: invalid API key"):
            list(ClaudeCliAgent().stream("hello", self.CONFIG))

    @patch("gba.services.agent_service.subprocess.Popen")
    def test_clean_exit_without_result(self, mock_popen):
        mock_popen.return_value = mock_process(stream_lines(ASSISTANT))

        with pytest.raises(AgentServiceError, match="without reporting a result"):
            list(ClaudeCliAgent().stream("hello", self.CONFIG))

    @patch("gba.services.agent_service.subprocess.Popen")
    def test_execute_collects_response(self, mock_popen):
        mock_popen.return_value = mock_process(stream_lines(ASSISTANT, RESULT))

        response = ClaudeCliAgent().execute("hello", self.CONFIG)

        assert response.content == "done"
        assert response.num_turns == 1

    def test_close_terminates_running_process(self):
        agent = ClaudeCliAgent()
        process = MagicMock()
        process.poll.return_value = None
        process.wait.side_effect = [subprocess.TimeoutExpired("claude", 10), 0]
        agent.process = process

        agent.close()

        process.terminate.assert_called_once()
        process.kill.assert_called_once()
        assert agent.process is None

    def test_close_without_process(self):
        ClaudeCliAgent().close()


class TestDriverThroughCli:
    """Stream-json output driven through ClaudeCliAgent and ExecutionDriver."""

    CONFIG = ExecutionConfig(system_prompt=SystemPrompt.preset(), max_turns=10)

    @pytest.fixture
    def record(self, store):
        record = FeatureState.new("add-auth", "0007", TaskKind.IMPLEMENTATION)
        store.save(record)
        return record

    @staticmethod
    def assistant(msg_id, input_tokens=100, output_tokens=50, model="claude-sonnet-4-20250514"):
        return {"type": "assistant", "message": {
            "id": msg_id, "model": model, "content": [{"type": "text", "text": "working"}],
            "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
        }}

    @patch("gba.services.agent_service.subprocess.Popen")
    def test_billed_cost_over_budget_fails_run(self, mock_popen, store, record):
        result = dict(RESULT, num_turns=2, total_cost_usd=5.0)
        mock_popen.return_value = mock_process(stream_lines(self.assistant("m1"), self.assistant("m2"), result))

        with pytest.raises(BudgetExceededError, match="max cost"):
            ExecutionDriver(store, ClaudeCliAgent(), max_cost_usd=1.0).run(record, self.CONFIG, "prompt")

        saved = store.load("0007")
        assert saved.state == TaskState.FAILED
        assert saved.status.message.startswith("budget exceeded")
        assert saved.execution.turns == 2
        assert saved.execution.cost.total_cost_usd == pytest.approx(5.0)

    @patch("gba.services.agent_service.subprocess.Popen")
    def test_estimated_cost_stops_run_before_result(self, mock_popen, store, record):
        expensive = self.assistant("m1", input_tokens=10_000, output_tokens=100_000, model="claude-opus-4-20250514")
        process = mock_process(stream_lines(expensive, self.assistant("m2"), RESULT))
        process.poll.return_value = None
        mock_popen.return_value = process

        with pytest.raises(BudgetExceededError, match="max cost"):
            ExecutionDriver(store, ClaudeCliAgent(), max_cost_usd=1.0).run(record, self.CONFIG, "prompt")

        saved = store.load("0007")
        assert saved.state == TaskState.FAILED
        assert saved.execution.turns == 1
        process.terminate.assert_called_once()

    @patch("gba.services.agent_service.subprocess.Popen")
    def test_run_within_budget_completes(self, mock_popen, store, record):
        mock_popen.return_value = mock_process(stream_lines(self.assistant("m1"), RESULT))

        finished = ExecutionDriver(store, ClaudeCliAgent(), max_cost_usd=1.0).run(record, self.CONFIG, "prompt")

        assert finished.state == TaskState.COMPLETED
        assert finished.execution.turns == 1
        assert finished.execution.cost.input_tokens == 100
        assert finished.execution.cost.total_cost_usd == pytest.approx(0.01)
