"""Tmux client used to host the King terminal session."""

import logging
import shutil
from enum import Enum
from typing import Optional

import libtmux

from king_bridge.constants import TMUX_HISTORY_LINES
from king_bridge.errors import KingError
from king_bridge.models.screen import ScreenSnapshot

logger = logging.getLogger(__name__)


class TmuxError(KingError):
    """Raised when a tmux command fails or tmux is unavailable."""

    pass


class SpecialKey(str, Enum):
    """Named keys, mapped to tmux key names."""

    ENTER = "Enter"
    ESCAPE = "Escape"
    UP = "Up"
    DOWN = "Down"
    CTRL_C = "C-c"


class TmuxClient:
    """Thin wrapper over libtmux for single-window sessions."""

    def __init__(self) -> None:
        self.server = libtmux.Server()

    def session_exists(self, session_name: str) -> bool:
        try:
            return self.server.has_session(session_name)
        except Exception as e:
            logger.debug(f"has-session failed for {session_name}: {e}")
            return False

    def create_session(
        self,
        session_name: str,
        working_directory: str,
        width: int,
        height: int,
    ) -> None:
        """Create a detached session with a fixed pane size in ``working_directory``."""
        if shutil.which("tmux") is None:
            raise TmuxError("tmux binary not found on PATH")

        try:
            self.server.new_session(
                session_name=session_name,
                start_directory=working_directory,
                attach=False,
                x=width,
                y=height,
            )
        except Exception as e:
            logger.error(f"Failed to create tmux session {session_name}: {e}")
            raise TmuxError(f"Failed to create tmux session '{session_name}': {e}") from e

        logger.info(
            f"Created tmux session {session_name} ({width}x{height}) in {working_directory}"
        )

    def kill_session(self, session_name: str) -> bool:
        """Kill the session if it exists. Returns True when a session was killed."""
        if not self.session_exists(session_name):
            return False
        result = self.server.cmd("kill-session", "-t", session_name)
        if result.stderr and self.session_exists(session_name):
            raise TmuxError(f"Failed to kill tmux session '{session_name}': {result.stderr}")
        logger.info(f"Killed tmux session {session_name}")
        return True

    def _get_pane(self, session_name: str) -> "libtmux.Pane":
        session = self.server.sessions.get(session_name=session_name, default=None)
        if session is None:
            raise TmuxError(f"Tmux session '{session_name}' not found")
        pane = session.windows[0].active_pane
        if pane is None:
            raise TmuxError(f"Tmux session '{session_name}' has no active pane")
        return pane

    def _pane_cmd(self, session_name: str, *args: str) -> list:
        pane = self._get_pane(session_name)
        result = pane.cmd(*args)
        if result.stderr:
            raise TmuxError(f"tmux {args[0]} failed for '{session_name}': {result.stderr}")
        return result.stdout

    def send_keys(self, session_name: str, text: str) -> None:
        """Type ``text`` literally into the pane.

        The payload is passed to tmux as a single argv entry with ``-l`` so key
        names and shell metacharacters inside it are never interpreted.
        """
        self._pane_cmd(session_name, "send-keys", "-l", "--", text)

    def send_special_key(self, session_name: str, key: SpecialKey) -> None:
        self._pane_cmd(session_name, "send-keys", SpecialKey(key).value)

    def capture(self, session_name: str, history_lines: Optional[int] = None) -> ScreenSnapshot:
        """Capture the visible buffer plus up to ``history_lines`` of scrollback."""
        lines = history_lines if history_lines is not None else TMUX_HISTORY_LINES
        pane = self._get_pane(session_name)
        result = pane.cmd("capture-pane", "-p", "-J", "-S", f"-{lines}")
        if result.stderr:
            raise TmuxError(f"tmux capture-pane failed for '{session_name}': {result.stderr}")
        try:
            height = int(pane.pane_height or 0)
        except (TypeError, ValueError):
            height = 0
        return ScreenSnapshot(lines=tuple(result.stdout or ()), height=height)


# Module-level singleton
tmux_client = TmuxClient()
