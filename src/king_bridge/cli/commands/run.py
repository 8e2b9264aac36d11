"""Run command for the king-bridge CLI."""

import logging
import os
import queue
import threading
from typing import Optional

import click
import requests

from king_bridge.constants import DEFAULT_KING_NAME
from king_bridge.errors import KingError
from king_bridge.models.event import KingEvent
from king_bridge.models.king import KingTimings
from king_bridge.services.events import EventStream
from king_bridge.services.king_service import KingController

logger = logging.getLogger(__name__)

HUB_TIMEOUT = 5.0


def forward_event(event: KingEvent, hub_url: Optional[str]) -> None:
    """Post ``event`` to the event hub, or echo it when no hub is configured."""
    if not hub_url:
        click.echo(f"[{event.type.value}] {event.model_dump_json(exclude={'type'})}")
        return
    try:
        response = requests.post(
            f"{hub_url.rstrip('/')}/events",
            json={**event.model_dump(mode="json"), "type": f"king_{event.type.value}"},
            timeout=HUB_TIMEOUT,
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.warning(f"Failed to forward {event.type.value} event to {hub_url}: {e}")


def _pump_events(events: EventStream, hub_url: Optional[str], stop: threading.Event) -> None:
    while not stop.is_set():
        try:
            event = events.get(timeout=0.5)
        except queue.Empty:
            continue
        forward_event(event, hub_url)


@click.command()
@click.option("--work-dir", default=None, help="Project directory (default: current directory)")
@click.option("--name", default=DEFAULT_KING_NAME, help=f"King name (default: {DEFAULT_KING_NAME})")
@click.option("--hub-url", envvar="KING_HUB_URL", help="Event hub base URL to forward events to")
@click.option("--ready-timeout", type=float, help="Seconds to wait for King's prompt")
@click.option("--response-timeout", type=float, help="Seconds to wait for each response")
def run(work_dir, name, hub_url, ready_timeout, response_timeout):
    """Start King and chat with it from stdin.

    Plain lines are sent as messages. `/answer N` picks option N (1-based) of
    the selection prompt on screen, `/question` shows it, `/quit` stops King.
    """
    working_directory = os.path.realpath(work_dir or os.getcwd())
    overrides = {}
    if ready_timeout is not None:
        overrides["ready_timeout"] = ready_timeout
    if response_timeout is not None:
        overrides["response_timeout"] = response_timeout

    controller = KingController(working_directory, name=name, timings=KingTimings(**overrides))
    stop_pump = threading.Event()
    pump = threading.Thread(
        target=_pump_events,
        args=(controller.events(), hub_url, stop_pump),
        name="king-event-pump",
        daemon=True,
    )
    pump.start()

    try:
        click.echo(f"Starting King in {working_directory} ...")
        controller.start()
        click.echo("King is ready. Type a message, /question, /answer N or /quit.")
        _repl(controller)
    except KingError as e:
        raise click.ClickException(str(e))
    finally:
        if controller.is_running():
            try:
                controller.stop()
            except KingError as e:
                click.echo(f"Failed to stop King: {e}", err=True)
        stop_pump.set()
        pump.join(timeout=2.0)
        _drain(controller.events(), hub_url)


def _repl(controller: KingController) -> None:
    while True:
        try:
            line = click.prompt("", prompt_suffix="> ", default="", show_default=False)
        except (EOFError, click.Abort):
            return
        line = line.strip()
        if not line:
            continue
        if line == "/quit":
            return
        try:
            if line == "/question":
                prompt = controller.pending_question()
                if prompt is None:
                    click.echo("No selection prompt on screen")
                    continue
                click.echo(prompt.question or "(no question text)")
                for i, option in enumerate(prompt.options, start=1):
                    marker = ">" if i - 1 == prompt.highlighted else " "
                    click.echo(f"{marker} {i}. {option}")
            elif line.startswith("/answer"):
                _, _, number = line.partition(" ")
                if not number.strip().isdigit():
                    click.echo("Usage: /answer N")
                    continue
                controller.answer_question(int(number) - 1)
            else:
                controller.send_message(line)
        except KingError as e:
            click.echo(f"Error: {e}", err=True)
        if not controller.is_running():
            click.echo("King is no longer running", err=True)
            return


def _drain(events: EventStream, hub_url: Optional[str]) -> None:
    while True:
        try:
            event = events.get_nowait()
        except queue.Empty:
            return
        forward_event(event, hub_url)
