"""Display of streamed agent chunks on the terminal."""

import click

from ...services.agent_stream import AgentChunk, ProgressChunk, ResultChunk, TurnChunk


class StreamDisplay:
    """Echoes agent chunks in a user-friendly format.

    Used as the driver's ``on_chunk`` callback.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.turns = 0
        self._seen_turns = set()

    def __call__(self, chunk: AgentChunk) -> None:
        if isinstance(chunk, TurnChunk):
            self._display_turn(chunk)
        elif isinstance(chunk, ProgressChunk):
            self._display_progress(chunk)
        elif isinstance(chunk, ResultChunk):
            self._display_result(chunk)

    def _display_turn(self, chunk: TurnChunk) -> None:
        if chunk.turn_id not in self._seen_turns:
            self._seen_turns.add(chunk.turn_id)
            self.turns += 1

        if chunk.content:
            click.echo(f"\n{chunk.content}")
        for call in chunk.tool_calls:
            click.echo(click.style(f"[Using {call.name}...]", dim=True))
            if self.verbose and call.arguments:
                click.echo(click.style(f"    {call.arguments}", dim=True))

    def _display_progress(self, chunk: ProgressChunk) -> None:
        parts = []
        if chunk.phase:
            parts.append(f"phase {chunk.phase}")
        if chunk.step:
            parts.append(f"step {chunk.step}")
        click.echo(click.style(f"▶ {' / '.join(parts)}", fg='cyan'))

    def _display_result(self, chunk: ResultChunk) -> None:
        click.echo("\n📊 Session Summary:")
        click.echo(f"   Status: {chunk.subtype}")
        click.echo(f"   Turns: {max(chunk.num_turns, self.turns)}")
        click.echo(f"   Tokens: {chunk.usage.input_tokens} in / {chunk.usage.output_tokens} out")
        click.echo(f"   Cost: ${chunk.usage.total_cost_usd:.4f}")
        if chunk.subtype == "error_max_turns":
            click.echo("   ⚠️  Maximum turns reached")
