"""Completion detection through the shared conversation log.

King's output goes to its terminal, not to us, so it is told (through its
mission prompt) to append every full response to .mission/conversation.md
followed by an end marker line. The watcher remembers the byte offset just
past the last marker it consumed and only ever looks at text after it.
"""

import logging
import re
import threading
from pathlib import Path
from typing import List, Optional

from king_bridge.constants import END_MARKER, RESPONSE_POLL_INTERVAL
from king_bridge.errors import ExchangeCancelledError, ResponseTimeoutError
from king_bridge.utils.terminal import wait_until

logger = logging.getLogger(__name__)

ASSISTANT_HEADER = "## Assistant"


def extract_response(segment: str) -> str:
    """Return the response body from one completed log segment.

    The log interleaves "## Human" and "## Assistant" sections; when a segment
    has an assistant header only the text after the last one is the response.
    """
    header_pos = segment.rfind(ASSISTANT_HEADER)
    if header_pos != -1:
        newline_pos = segment.find("\n", header_pos)
        segment = "" if newline_pos == -1 else segment[newline_pos + 1 :]
    return segment.strip()


class ConversationWatcher:
    """Single-flight waiter for the next end marker in the conversation log."""

    def __init__(
        self,
        path: Path,
        poll_interval: float = RESPONSE_POLL_INTERVAL,
        end_marker: str = END_MARKER,
    ):
        self.path = Path(path)
        self.poll_interval = poll_interval
        self.end_marker = end_marker
        self._marker_re = re.compile(
            rb"^" + re.escape(end_marker.encode("utf-8")) + rb"[ \t]*\r?$", re.MULTILINE
        )
        self._offset = 0
        self._lock = threading.Lock()

    @property
    def offset(self) -> int:
        with self._lock:
            return self._offset

    def reset(self, to_end: bool = True) -> None:
        """Forget consumed state. With ``to_end`` existing history is skipped."""
        with self._lock:
            if to_end and self.path.exists():
                self._offset = self.path.stat().st_size
            else:
                self._offset = 0
            logger.debug(f"Conversation offset reset to {self._offset} for {self.path}")

    def check(self) -> Optional[str]:
        """Consume and return the next completed response, or None if there is none yet."""
        with self._lock:
            if not self.path.exists():
                return None

            size = self.path.stat().st_size
            if size < self._offset:
                logger.warning(
                    f"Conversation log {self.path} shrank ({size} < {self._offset}), "
                    "rereading from start"
                )
                self._offset = 0
            if size == self._offset:
                return None

            with open(self.path, "rb") as f:
                f.seek(self._offset)
                data = f.read()

            match = self._marker_re.search(data)
            if match is None:
                return None

            end = match.end()
            if data[end : end + 1] == b"\n":
                end += 1
            segment = data[: match.start()].decode("utf-8", errors="replace")
            self._offset += end

        return extract_response(segment)

    def wait_for_response(
        self, timeout: float, cancel_event: Optional[threading.Event] = None
    ) -> str:
        """Block until the next response is complete.

        Raises:
            ResponseTimeoutError: no end marker before the deadline; the offset
                is left alone so a late marker is picked up by the next call.
            ExchangeCancelledError: ``cancel_event`` was set while waiting.
        """
        found: List[str] = []

        def _completed() -> bool:
            response = self.check()
            if response is None:
                return False
            found.append(response)
            return True

        if wait_until(_completed, timeout, self.poll_interval, cancel_event):
            return found[0]
        if cancel_event is not None and cancel_event.is_set():
            raise ExchangeCancelledError(f"Wait on {self.path} cancelled")
        raise ResponseTimeoutError(
            f"No '{self.end_marker}' marker in {self.path} after {timeout:g} seconds"
        )
