"""Chunk types for streamed agent output and the stream-json parser.

The agent reports progress as newline-delimited JSON messages (Claude's
``stream-json`` output format). The parser turns them into three kinds of
chunk that the execution driver checkpoints on:

- ``TurnChunk``: one assistant message (a turn boundary) with its token usage and estimated cost
- ``ProgressChunk``: a ``PHASE:``/``STEP:`` self-report found in assistant text
- ``ResultChunk``: the terminal message carrying the session totals
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from ..core.constants import DEFAULT_TOKEN_PRICES_USD, TOKEN_PRICES_USD

logger = logging.getLogger(__name__)

_PROGRESS_RE = re.compile(
    r"^[ \t]*(?:[-*][ \t]*)?\**(PHASE|STEP)\**[ \t]*[:=][ \t]*\**(.+?)\**[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)


@dataclass
class Usage:
    """Usage statistics for a turn or a whole session."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost_usd: float = 0.0


@dataclass
class ToolCall:
    """Tool call made during execution."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TurnChunk:
    """An assistant message. Messages sharing ``turn_id`` belong to one turn."""
    turn_id: str
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)


@dataclass
class ProgressChunk:
    """The agent's self-reported position."""
    phase: Optional[str] = None
    step: Optional[str] = None
    note: Optional[str] = None


@dataclass
class ResultChunk:
    """Terminal chunk with session totals."""
    content: str = ""
    usage: Usage = field(default_factory=Usage)
    num_turns: int = 0
    is_error: bool = False
    subtype: str = "success"
    error: Optional[str] = None
    session_id: Optional[str] = None


AgentChunk = Union[TurnChunk, ProgressChunk, ResultChunk]


@dataclass
class AgentResponse:
    """Collected response of a whole agent call."""
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    num_turns: int = 0
    is_error: bool = False


def extract_progress(text: str) -> Optional[ProgressChunk]:
    """Find the last reported phase and step in a block of assistant text."""
    phase = step = None
    for match in _PROGRESS_RE.finditer(text):
        label, value = match.group(1).lower(), match.group(2).strip().strip('`')
        if label == "phase":
            phase = value
        else:
            step = value
    if phase is None and step is None:
        return None
    return ProgressChunk(phase=phase, step=step)


def _usage_from(data: Dict[str, Any], cost: float = 0.0) -> Usage:
    data = data or {}
    return Usage(
        input_tokens=int(data.get("input_tokens") or 0),
        output_tokens=int(data.get("output_tokens") or 0),
        total_cost_usd=float(cost or 0.0),
    )


def estimate_cost(model: Optional[str], input_tokens: int, output_tokens: int) -> float:
    """Estimate the dollar cost of a turn from its token usage.

    Assistant messages report tokens but no cost; the estimate lets a cost
    budget act before the session's billed total arrives with the result.
    """
    input_price, output_price = DEFAULT_TOKEN_PRICES_USD
    for family, prices in TOKEN_PRICES_USD.items():
        if model and family in model.lower():
            input_price, output_price = prices
            break
    return (input_tokens * input_price + output_tokens * output_price) / 1_000_000


def _turn_usage(body: Dict[str, Any]) -> Usage:
    usage = _usage_from(body.get("usage"))
    usage.total_cost_usd = estimate_cost(body.get("model"), usage.input_tokens, usage.output_tokens)
    return usage


def message_to_chunks(message: Dict[str, Any], fallback_turn_id: str = "turn") -> List[AgentChunk]:
    """Convert one decoded stream-json message into chunks.

    ``fallback_turn_id`` names the turn when the message carries no id.
    """
    msg_type = message.get("type", "")

    if msg_type == "assistant":
        body = message.get("message", {}) or {}
        texts = []
        tool_calls = []
        for block in body.get("content", []) or []:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "text":
                texts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(ToolCall(name=block.get("name", "unknown"), arguments=block.get("input") or {}))

        content = "".join(texts)
        chunks: List[AgentChunk] = [
            TurnChunk(
                turn_id=str(body.get("id") or message.get("uuid") or fallback_turn_id),
                content=content,
                tool_calls=tool_calls,
                usage=_turn_usage(body),
            )
        ]
        progress = extract_progress(content) if content else None
        if progress:
            chunks.append(progress)
        return chunks

    if msg_type == "result":
        is_error = bool(message.get("is_error")) or message.get("subtype", "success") != "success"
        cost = message.get("total_cost_usd", message.get("cost_usd", 0.0))
        content = message.get("result") or ""
        return [
            ResultChunk(
                content=content,
                usage=_usage_from(message.get("usage"), cost),
                num_turns=int(message.get("num_turns") or 0),
                is_error=is_error,
                subtype=message.get("subtype") or "success",
                error=(content or message.get("subtype")) if is_error else None,
                session_id=message.get("session_id"),
            )
        ]

    # system/user messages carry nothing to checkpoint
    return []


class StreamJsonParser:
    """Incremental parser for newline-delimited JSON output.

    Partial lines are buffered until their newline arrives; lines that are
    not JSON are kept in ``noise`` for error reporting.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._messages = 0
        self.noise: List[str] = []

    def feed(self, data: Union[str, bytes]) -> List[AgentChunk]:
        if isinstance(data, bytes):
            data = data.decode(errors="replace")
        self._buffer += data

        chunks: List[AgentChunk] = []
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            chunks.extend(self._parse_line(line))
        return chunks

    def flush(self) -> List[AgentChunk]:
        line, self._buffer = self._buffer, ""
        return self._parse_line(line)

    def _parse_line(self, line: str) -> List[AgentChunk]:
        line = line.strip()
        if not line:
            return []
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            self.noise.append(line)
            return []
        if not isinstance(message, dict):
            return []
        self._messages += 1
        return message_to_chunks(message, fallback_turn_id=f"message-{self._messages}")


def collect(chunks: Iterable[AgentChunk]) -> AgentResponse:
    """Fold a chunk stream into a single response."""
    response = AgentResponse()
    texts = []
    for chunk in chunks:
        if isinstance(chunk, TurnChunk):
            if chunk.content:
                texts.append(chunk.content)
            response.tool_calls.extend(chunk.tool_calls)
            response.usage.input_tokens += chunk.usage.input_tokens
            response.usage.output_tokens += chunk.usage.output_tokens
            response.num_turns += 1
        elif isinstance(chunk, ResultChunk):
            response.usage = chunk.usage
            response.num_turns = max(response.num_turns, chunk.num_turns)
            response.is_error = chunk.is_error
            if chunk.content:
                texts = [chunk.content]
    response.content = "\n".join(texts)
    return response
