"""Polling helpers shared by the King services."""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def wait_until(
    predicate: Callable[[], bool],
    timeout: float,
    polling_interval: float = 1.0,
    cancel_event: Optional[threading.Event] = None,
    on_poll: Optional[Callable[[int, float], None]] = None,
) -> bool:
    """Poll ``predicate`` until it returns True, the deadline passes or ``cancel_event`` is set.

    Sleeps go through ``cancel_event.wait`` so a cancelled wait returns
    promptly instead of finishing its interval.

    Args:
        predicate: Called once per poll; exceptions propagate to the caller.
        timeout: Seconds before giving up.
        polling_interval: Fixed delay between polls.
        cancel_event: Optional event that aborts the wait when set.
        on_poll: Optional callback receiving (poll_count, elapsed_seconds).

    Returns:
        True if the predicate succeeded, False on timeout or cancellation.
    """
    cancel_event = cancel_event or threading.Event()
    start_time = time.monotonic()
    poll_count = 0

    while True:
        poll_count += 1
        if predicate():
            return True

        elapsed = time.monotonic() - start_time
        if on_poll is not None:
            on_poll(poll_count, elapsed)

        remaining = timeout - elapsed
        if remaining <= 0:
            return False
        if cancel_event.wait(min(polling_interval, remaining)):
            logger.debug(f"Wait cancelled after {poll_count} polls")
            return False
