"""King lifecycle controller.

Owns the single King tmux session and everything mutable about it. All state
lives behind one lock that is only held for in-memory updates; tmux commands
and conversation log reads always happen outside it.

State machine: STOPPED -> STARTING -> RUNNING -> (STOPPED | ERROR). START is
allowed again from STOPPED or ERROR.
"""

import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional

from king_bridge.clients.tmux import SpecialKey, TmuxError, tmux_client
from king_bridge.constants import (
    DEFAULT_KING_NAME,
    MISSION_DIR_NAME,
    MISSION_PROMPT_FILE,
    SESSION_PREFIX,
    TMUX_PANE_HEIGHT,
    TMUX_PANE_WIDTH,
)
from king_bridge.errors import (
    ExchangeCancelledError,
    ExchangeInProgressError,
    KingAlreadyRunningError,
    KingError,
    KingNotRunningError,
    KingPreconditionError,
    MissionConfigMissingError,
    NoSelectionPromptError,
    OptionIndexError,
    ReadinessTimeoutError,
    ResponseTimeoutError,
)
from king_bridge.models.event import EventType
from king_bridge.models.king import KingSession, KingStatus, KingTimings
from king_bridge.models.screen import ScreenSnapshot, SelectionPrompt
from king_bridge.models.usage import UsageDelta
from king_bridge.providers.claude_code import ClaudeCodeProvider
from king_bridge.services.conversation import ConversationWatcher
from king_bridge.services.events import EventEmitter, EventStream
from king_bridge.services.usage import (
    ConversationUsageSource,
    TokenCounter,
    UsageAccountant,
)
from king_bridge.utils.mission import (
    conversation_path,
    load_project_config,
    mission_prompt_path,
)
from king_bridge.utils.terminal import wait_until

logger = logging.getLogger(__name__)

# Escape leaves multi-line input mode, Enter submits
SUBMIT_KEYS = (SpecialKey.ESCAPE, SpecialKey.ENTER)

THREAD_JOIN_TIMEOUT = 5.0


def navigation_keys(current: int, target: int) -> List[SpecialKey]:
    """Minimal Up/Down presses to move the highlight from ``current`` to ``target``."""
    if target >= current:
        return [SpecialKey.DOWN] * (target - current)
    return [SpecialKey.UP] * (current - target)


class _Exchange:
    """One send_message round trip and its cancellation scope."""

    def __init__(self, message: str):
        self.message = message
        self.cancel = threading.Event()
        self.done = threading.Event()
        self.thread: Optional[threading.Thread] = None


class KingController:
    """Runs King (Claude Code) in tmux and exposes it as request/response plus events."""

    def __init__(
        self,
        working_directory: str,
        name: str = DEFAULT_KING_NAME,
        timings: Optional[KingTimings] = None,
        token_counter: Optional[TokenCounter] = None,
        emitter: Optional[EventEmitter] = None,
        pane_width: int = TMUX_PANE_WIDTH,
        pane_height: int = TMUX_PANE_HEIGHT,
    ):
        self.working_directory = os.path.realpath(working_directory)
        self.name = name
        self.session_name = name if name.startswith(SESSION_PREFIX) else f"{SESSION_PREFIX}{name}"
        self.timings = timings or KingTimings()
        self.pane_width = pane_width
        self.pane_height = pane_height

        log_path = conversation_path(self.working_directory)
        self._watcher = ConversationWatcher(
            log_path, poll_interval=self.timings.response_poll_interval
        )
        self._accountant = UsageAccountant(token_counter)
        self._usage_source = ConversationUsageSource(log_path, token_counter)
        self._emitter = emitter or EventEmitter()

        self._lock = threading.Lock()
        self._session = KingSession(name=name, working_directory=self.working_directory)
        self._stopping = False
        self._provider: Optional[ClaudeCodeProvider] = None
        self._exchange: Optional[_Exchange] = None
        self._last_screen: Optional[ScreenSnapshot] = None
        self._usage_baseline: Optional[int] = None
        self._last_usage_total: Optional[int] = None
        self._monitor_stop = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None

    def status(self) -> KingStatus:
        with self._lock:
            return self._session.status

    def is_running(self) -> bool:
        return self.status() == KingStatus.RUNNING

    def get_session(self) -> KingSession:
        with self._lock:
            return self._session.model_copy()

    def events(self) -> EventStream:
        """Read-only view of the outbound KingEvent queue."""
        return self._emitter.stream

    def start(self) -> None:
        """Launch King and block until its idle prompt shows up."""
        with self._lock:
            if self._session.status == KingStatus.RUNNING:
                raise KingAlreadyRunningError("King is already running")
            if self._session.status == KingStatus.STARTING:
                raise KingPreconditionError("King is already starting")
            self._session.status = KingStatus.STARTING
        logger.info(f"Starting King in {self.working_directory} (session {self.session_name})")

        session_created = False
        try:
            if not mission_prompt_path(self.working_directory).exists():
                raise MissionConfigMissingError(
                    f"{MISSION_DIR_NAME}/{MISSION_PROMPT_FILE} not found - run 'mc init' first"
                )
            provider = ClaudeCodeProvider(
                self.working_directory, load_project_config(self.working_directory)
            )
            command = provider.build_command()

            if tmux_client.kill_session(self.session_name):
                logger.warning(f"Killed leftover tmux session {self.session_name}")
            tmux_client.create_session(
                self.session_name, self.working_directory, self.pane_width, self.pane_height
            )
            session_created = True
            tmux_client.send_keys(self.session_name, command)
            tmux_client.send_special_key(self.session_name, SpecialKey.ENTER)

            if not self._wait_for_ready(provider):
                raise ReadinessTimeoutError(
                    f"King did not become ready within {self.timings.ready_timeout:g} seconds"
                )

            self._watcher.reset(to_end=True)
            baseline = self._read_usage_total()
        except Exception as e:
            logger.error(f"Failed to start King: {e}")
            if session_created:
                try:
                    tmux_client.kill_session(self.session_name)
                except TmuxError as cleanup_error:
                    logger.warning(
                        f"Failed to clean up session {self.session_name}: {cleanup_error}"
                    )
            with self._lock:
                self._session.status = KingStatus.ERROR
                self._emitter.emit(EventType.ERROR, {"error": str(e), "stage": "start"})
            if isinstance(e, KingError):
                raise
            raise KingError(f"Failed to start King: {e}") from e

        with self._lock:
            self._provider = provider
            self._session.status = KingStatus.RUNNING
            self._session.total_tokens = 0
            self._session.total_cost_usd = 0.0
            self._usage_baseline = baseline
            self._last_usage_total = baseline
            self._monitor_stop = threading.Event()
            self._monitor_thread = threading.Thread(
                target=self._monitor_loop,
                args=(self._monitor_stop,),
                name=f"{self.session_name}-monitor",
                daemon=True,
            )
            self._emitter.emit(
                EventType.STARTED,
                {
                    "session_name": self.session_name,
                    "working_directory": self.working_directory,
                    "started_at": datetime.now(timezone.utc).isoformat(),
                },
            )
            self._emitter.emit(EventType.AGENT_SPAWNED, self._agent_payload("working"))
            monitor = self._monitor_thread
        monitor.start()
        logger.info(f"King is running in session {self.session_name}")

    def stop(self) -> None:
        """Interrupt King, destroy its session and cancel any pending wait."""
        with self._lock:
            self._require_running()
            self._stopping = True
            exchange, self._exchange = self._exchange, None
            if exchange is not None:
                exchange.cancel.set()
            self._monitor_stop.set()
            monitor, self._monitor_thread = self._monitor_thread, None
        logger.info(f"Stopping King (session {self.session_name})")

        try:
            try:
                tmux_client.send_special_key(self.session_name, SpecialKey.CTRL_C)
            except TmuxError as e:
                logger.warning(f"Failed to interrupt King: {e}")
            tmux_client.kill_session(self.session_name)
        except Exception as e:
            logger.error(f"Failed to stop King: {e}")
            with self._lock:
                self._stopping = False
                self._session.status = KingStatus.ERROR
            raise

        for thread in (monitor, exchange.thread if exchange else None):
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=THREAD_JOIN_TIMEOUT)
        self._watcher.reset(to_end=False)

        with self._lock:
            self._stopping = False
            self._provider = None
            self._last_screen = None
            self._session.status = KingStatus.STOPPED
            self._emitter.emit(EventType.STOPPED, {"session_name": self.session_name})
            self._emitter.emit(EventType.AGENT_STOPPED, self._agent_payload("stopped"))
        logger.info("King stopped")

    def send_message(self, message: str) -> None:
        """Type ``message`` into King and return; the reply arrives as a ``message`` event."""
        with self._lock:
            self._require_running()
            if self._exchange is not None and not self._exchange.done.is_set():
                raise ExchangeInProgressError("King is still answering the previous message")
            exchange = _Exchange(message)
            self._exchange = exchange

        try:
            tmux_client.send_keys(self.session_name, message)
            for key in SUBMIT_KEYS:
                # ESC followed too quickly by CR reads as Alt+Enter
                time.sleep(self.timings.key_delay)
                tmux_client.send_special_key(self.session_name, key)
        except TmuxError as e:
            logger.error(f"Failed to send message to King: {e}")
            with self._lock:
                if self._exchange is exchange:
                    self._exchange = None
            raise

        with self._lock:
            if exchange.cancel.is_set():
                exchange.done.set()
                logger.warning("King was stopped while the message was being typed")
                raise KingNotRunningError("King was stopped before the message was submitted")
            self._emitter.emit(
                EventType.USER_MESSAGE,
                {"content": message, "timestamp": int(time.time() * 1000)},
            )
            exchange.thread = threading.Thread(
                target=self._run_exchange,
                args=(exchange,),
                name=f"{self.session_name}-exchange",
                daemon=True,
            )
        exchange.thread.start()
        logger.info(f"Sent message to King ({len(message)} chars)")

    def _run_exchange(self, exchange: _Exchange) -> None:
        try:
            try:
                response = self._watcher.wait_for_response(
                    self.timings.response_timeout, exchange.cancel
                )
            except ExchangeCancelledError:
                logger.debug("Response wait cancelled by stop")
                return
            except ResponseTimeoutError as e:
                logger.warning(f"King response timed out: {e}")
                self._emit_for_exchange(
                    exchange, EventType.ERROR, {"error": str(e), "kind": "timeout"}
                )
                return
            except OSError as e:
                logger.error(f"Failed to read conversation log: {e}")
                self._emit_for_exchange(
                    exchange, EventType.ERROR, {"error": str(e), "kind": "conversation_log"}
                )
                return

            try:
                delta = self._accountant.measure(exchange.message, response)
            except Exception as e:
                logger.warning(f"Token counting failed, usage not updated: {e}")
                delta = UsageDelta()

            with self._lock:
                if exchange.cancel.is_set():
                    return
                self._session.total_tokens += delta.total_tokens
                self._session.total_cost_usd += delta.cost_usd
                self._emitter.emit(EventType.MESSAGE, {"content": response})
                self._emitter.emit(
                    EventType.USAGE_UPDATED,
                    {
                        "input_tokens": delta.input_tokens,
                        "output_tokens": delta.output_tokens,
                        "cost_usd": delta.cost_usd,
                        "total_tokens": self._session.total_tokens,
                        "total_cost_usd": self._session.total_cost_usd,
                    },
                )
            logger.info(
                f"King responded ({len(response)} chars, {delta.total_tokens} tokens, "
                f"${delta.cost_usd:.4f})"
            )
        finally:
            exchange.done.set()

    def _emit_for_exchange(self, exchange: _Exchange, event_type: EventType, data: dict) -> None:
        with self._lock:
            if not exchange.cancel.is_set():
                self._emitter.emit(event_type, data)

    def pending_question(self) -> Optional[SelectionPrompt]:
        """Selection prompt currently on screen, if any."""
        with self._lock:
            self._require_running()
            provider = self._provider
        return provider.parse_selection_prompt(self._capture())

    def answer_question(self, index: int) -> None:
        """Pick option ``index`` (0-based) in the selection prompt on screen."""
        with self._lock:
            self._require_running()
            provider = self._provider

        prompt = provider.parse_selection_prompt(self._capture())
        if prompt is None:
            raise NoSelectionPromptError("No selection prompt on screen")
        if not 0 <= index < len(prompt.options):
            raise OptionIndexError(
                f"Option index {index} out of range for {len(prompt.options)} options"
            )

        for key in navigation_keys(prompt.highlighted, index):
            tmux_client.send_special_key(self.session_name, key)
            time.sleep(self.timings.key_delay)
        tmux_client.send_special_key(self.session_name, SpecialKey.ENTER)

        with self._lock:
            self._emitter.emit(
                EventType.ANSWER,
                {"index": index, "option": prompt.options[index], "question": prompt.question},
            )
        logger.info(f"Answered '{prompt.question}' with option {index}: {prompt.options[index]}")

    def _require_running(self) -> None:
        # Caller holds self._lock
        if self._session.status != KingStatus.RUNNING or self._stopping:
            raise KingNotRunningError("King is not running")

    def _agent_payload(self, status: str) -> dict:
        return {
            "id": self.name,
            "name": self.name,
            "type": "king",
            "status": status,
            "session_name": self.session_name,
        }

    def _capture(self) -> ScreenSnapshot:
        snapshot = tmux_client.capture(self.session_name)
        with self._lock:
            previous, self._last_screen = self._last_screen, snapshot
        if logger.isEnabledFor(logging.DEBUG):
            changed = snapshot.diff(previous)
            if changed:
                logger.debug(f"Screen changed: {len(changed)} new lines, last: {changed[-1]!r}")
        return snapshot

    def _wait_for_ready(self, provider: ClaudeCodeProvider) -> bool:
        trust_accepted = False

        def _ready() -> bool:
            nonlocal trust_accepted
            snapshot = self._capture()
            # The trust dialog highlights its first option with the prompt glyph
            if not trust_accepted and provider.is_trust_prompt(snapshot):
                logger.info("Workspace trust prompt detected, auto-accepting")
                tmux_client.send_special_key(self.session_name, SpecialKey.ENTER)
                trust_accepted = True
                return False
            return provider.is_ready(snapshot)

        def _on_poll(poll_count: int, elapsed: float) -> None:
            logger.debug(f"Waiting for King prompt: poll={poll_count} elapsed={elapsed:.1f}s")

        return wait_until(
            _ready,
            timeout=self.timings.ready_timeout,
            polling_interval=self.timings.ready_poll_interval,
            on_poll=_on_poll,
        )

    def _read_usage_total(self) -> Optional[int]:
        try:
            return self._usage_source.read().total_tokens
        except Exception as e:
            logger.warning(f"Failed to read conversation usage: {e}")
            return None

    def _monitor_loop(self, stop_event: threading.Event) -> None:
        """Low-frequency health and usage poll while King is running."""
        while not stop_event.wait(self.timings.usage_poll_interval):
            if not tmux_client.session_exists(self.session_name):
                self._handle_session_lost(stop_event)
                return

            try:
                report = self._usage_source.read()
            except Exception as e:
                logger.warning(f"Failed to read conversation usage: {e}")
                continue

            with self._lock:
                if stop_event.is_set():
                    return
                if report.total_tokens == self._last_usage_total:
                    continue
                self._last_usage_total = report.total_tokens
                # Session totals stay authoritative; log-wide figures get their own keys
                self._emitter.emit(
                    EventType.USAGE_UPDATED,
                    {
                        "source": "conversation_log",
                        "total_tokens": self._session.total_tokens,
                        "total_cost_usd": self._session.total_cost_usd,
                        "log_total_tokens": report.total_tokens,
                        "log_tokens_since_start": max(
                            0, report.total_tokens - (self._usage_baseline or 0)
                        ),
                        "log_estimated_cost_usd": report.estimated_cost_usd,
                        "conversation_length": report.conversation_length,
                    },
                )

    def _handle_session_lost(self, stop_event: threading.Event) -> None:
        with self._lock:
            if stop_event.is_set() or self._stopping:
                return
            if self._session.status != KingStatus.RUNNING:
                return
            self._session.status = KingStatus.ERROR
            exchange, self._exchange = self._exchange, None
            if exchange is not None:
                exchange.cancel.set()
            self._emitter.emit(
                EventType.ERROR,
                {"error": "King session exited unexpectedly", "kind": "session_lost"},
            )
            self._emitter.emit(EventType.AGENT_STOPPED, self._agent_payload("error"))
        logger.error(f"King tmux session {self.session_name} disappeared")
