"""Status command for the king-bridge CLI."""

import os

import click

from king_bridge.clients.tmux import TmuxError, tmux_client
from king_bridge.constants import DEFAULT_KING_NAME, SESSION_PREFIX
from king_bridge.providers.claude_code import ClaudeCodeProvider
from king_bridge.utils.mission import conversation_path, mission_prompt_path


@click.command()
@click.option("--work-dir", default=None, help="Project directory (default: current directory)")
@click.option("--name", default=DEFAULT_KING_NAME, help=f"King name (default: {DEFAULT_KING_NAME})")
def status(work_dir, name):
    """Show mission files and the state of King's tmux session."""
    working_directory = os.path.realpath(work_dir or os.getcwd())
    session_name = name if name.startswith(SESSION_PREFIX) else f"{SESSION_PREFIX}{name}"

    prompt_file = mission_prompt_path(working_directory)
    log_file = conversation_path(working_directory)
    click.echo(f"Mission prompt: {prompt_file} ({'found' if prompt_file.exists() else 'missing'})")
    click.echo(f"Conversation:   {log_file} ({'found' if log_file.exists() else 'missing'})")

    if not tmux_client.session_exists(session_name):
        click.echo(f"Session:        {session_name} (not running)")
        return
    click.echo(f"Session:        {session_name} (running)")

    try:
        snapshot = tmux_client.capture(session_name)
    except TmuxError as e:
        raise click.ClickException(str(e))

    provider = ClaudeCodeProvider(working_directory)
    click.echo(f"Ready:          {'yes' if provider.is_ready(snapshot) else 'no'}")
    prompt = provider.parse_selection_prompt(snapshot)
    if prompt is not None:
        click.echo(f"Question:       {prompt.question or '(no question text)'}")
        for i, option in enumerate(prompt.options, start=1):
            marker = ">" if i - 1 == prompt.highlighted else " "
            click.echo(f"              {marker} {i}. {option}")
