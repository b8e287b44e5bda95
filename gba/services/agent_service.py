"""Agent call adapter.

Wraps the ``claude`` CLI in print mode with ``--output-format stream-json``
and exposes its output as a stream of chunks the driver can checkpoint on.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Union

from ..core.constants import CLAUDE_EXECUTABLE, CLAUDE_PATH_ENV
from ..prompts.template import ExecutionConfig
from .agent_stream import AgentChunk, AgentResponse, ResultChunk, StreamJsonParser, collect
from .exceptions import AgentServiceError

logger = logging.getLogger(__name__)


class AgentService(Protocol):
    """Anything that can run a prompt and stream chunks back."""

    def stream(
        self,
        prompt: str,
        config: ExecutionConfig,
        cwd: Optional[Union[str, Path]] = None,
    ) -> Iterator[AgentChunk]:
        ...

    def close(self) -> None:
        ...


class ClaudeCliAgent:
    """Runs prompts through the ``claude`` CLI."""

    def __init__(
        self,
        executable: Optional[str] = None,
        model: Optional[str] = None,
        extra_args: Optional[List[str]] = None,
    ):
        self.executable = (
            executable
            or os.environ.get(CLAUDE_PATH_ENV)
            or shutil.which(CLAUDE_EXECUTABLE)
            or CLAUDE_EXECUTABLE
        )
        self.model = model
        self.extra_args = list(extra_args or [])
        self.process: Optional[subprocess.Popen] = None

    def build_command(self, prompt: str, config: ExecutionConfig) -> List[str]:
        """Build the CLI invocation for a prompt and its execution config."""
        cmd = [
            self.executable,
            "-p", prompt,
            "--output-format", "stream-json",
            "--verbose",
            "--max-turns", str(config.max_turns),
        ]

        text = config.system_prompt.text
        if config.use_preset:
            if text:
                cmd.extend(["--append-system-prompt", text])
        else:
            cmd.extend(["--system-prompt", text])

        # no --allowedTools means every tool is available
        if config.tools:
            cmd.extend(["--allowedTools", ",".join(config.tools)])

        if self.model:
            cmd.extend(["--model", self.model])

        cmd.extend(self.extra_args)
        return cmd

    def stream(
        self,
        prompt: str,
        config: ExecutionConfig,
        cwd: Optional[Union[str, Path]] = None,
    ) -> Iterator[AgentChunk]:
        """Run the prompt and yield chunks as the agent produces them.

        Closing the generator early (or an exception in the consumer)
        terminates the child process.

        Raises:
            AgentServiceError: If the CLI cannot be started, or exits with an
                error before reporting a result
        """
        cmd = self.build_command(prompt, config)
        logger.debug(f"Starting agent: {self.executable} (cwd={cwd}, max_turns={config.max_turns})")

        try:
            self.process = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise AgentServiceError(
                f"Agent executable not found: {self.executable}. "
                f"Install the claude CLI or set {CLAUDE_PATH_ENV}."
            ) from e
        except OSError as e:
            raise AgentServiceError(f"Failed to start agent: {e}") from e

        parser = StreamJsonParser()
        saw_result = False
        try:
            for line in self.process.stdout:
                for chunk in parser.feed(line):
                    if isinstance(chunk, ResultChunk):
                        saw_result = True
                    yield chunk
            for chunk in parser.flush():
                if isinstance(chunk, ResultChunk):
                    saw_result = True
                yield chunk

            returncode = self.process.wait()
            if returncode != 0 and not saw_result:
                detail = "\n".join(parser.noise[-5:]) or "no output"
                raise AgentServiceError(f"Agent exited with code {returncode}: {detail}")
            if not saw_result:
                raise AgentServiceError("Agent exited without reporting a result")
        finally:
            self.close()

    def execute(
        self,
        prompt: str,
        config: ExecutionConfig,
        cwd: Optional[Union[str, Path]] = None,
    ) -> AgentResponse:
        """Run the prompt to completion and collect the response."""
        return collect(self.stream(prompt, config, cwd))

    def close(self) -> None:
        """Terminate the running agent process, if any."""
        process, self.process = self.process, None
        if process is None:
            return
        if process.poll() is None:
            logger.info(f"Terminating agent process (PID: {process.pid})")
            process.terminate()
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        if process.stdout:
            process.stdout.close()
