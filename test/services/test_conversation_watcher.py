"""Unit tests for the conversation log completion protocol."""

import threading

import pytest

from king_bridge.errors import ExchangeCancelledError, ResponseTimeoutError
from king_bridge.services.conversation import ConversationWatcher, extract_response


def append(path, text):
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)


@pytest.fixture
def log_path(tmp_path):
    mission = tmp_path / ".mission"
    mission.mkdir()
    return mission / "conversation.md"


@pytest.fixture
def watcher(log_path):
    return ConversationWatcher(log_path, poll_interval=0.01)


class TestExtractResponse:
    def test_plain_text_is_trimmed(self):
        assert extract_response("\nhi there\n") == "hi there"

    def test_last_assistant_section_wins(self):
        segment = (
            "## Human [2026-01-22T10:32:00Z]\n\nSecond message.\n\n---\n\n"
            "## Assistant [2026-01-22T10:32:30Z]\n\nSecond response.\n\nMore lines.\n\n"
        )
        assert extract_response(segment) == "Second response.\n\nMore lines."

    def test_header_without_body(self):
        assert extract_response("## Assistant") == ""


class TestCheck:
    def test_missing_file_is_not_complete(self, watcher):
        assert watcher.check() is None

    def test_no_marker_is_not_complete(self, watcher, log_path):
        append(log_path, "## Assistant\n\nStill typing...")
        assert watcher.check() is None
        assert watcher.offset == 0

    def test_marker_must_be_on_its_own_line(self, watcher, log_path):
        append(log_path, "the marker is ---END--- inline\n")
        assert watcher.check() is None

    def test_marker_at_end_without_newline(self, watcher, log_path):
        append(log_path, "Done!\n---END---")
        assert watcher.check() == "Done!"
        assert watcher.offset == log_path.stat().st_size

    def test_crlf_marker(self, watcher, log_path):
        with open(log_path, "wb") as f:
            f.write(b"Done!\r\n---END---\r\n")
        assert watcher.check() == "Done!"
        assert watcher.offset == log_path.stat().st_size

    def test_offset_advances_past_marker_line(self, watcher, log_path):
        append(log_path, "hi there\n---END---\n")
        assert watcher.check() == "hi there"
        assert watcher.offset == len("hi there\n---END---\n")

    def test_utf8_content(self, watcher, log_path):
        append(log_path, "héllo ✓\n---END---\n")
        assert watcher.check() == "héllo ✓"
        assert watcher.offset == len("héllo ✓\n---END---\n".encode("utf-8"))

    def test_truncated_log_resets_offset(self, watcher, log_path):
        append(log_path, "first response\n---END---\n")
        assert watcher.check() == "first response"

        log_path.write_text("new\n---END---\n", encoding="utf-8")
        assert watcher.check() == "new"

    def test_reset_to_end_skips_history(self, watcher, log_path):
        append(log_path, "old\n---END---\n")
        watcher.reset(to_end=True)
        assert watcher.check() is None

        append(log_path, "new\n---END---\n")
        assert watcher.check() == "new"

    def test_reset_to_start(self, watcher, log_path):
        append(log_path, "old\n---END---\n")
        assert watcher.check() == "old"
        watcher.reset(to_end=False)
        assert watcher.offset == 0


class TestWaitForResponse:
    def test_consecutive_waits_have_no_overlap_or_loss(self, watcher, log_path):
        append(log_path, "first answer\n---END---\n")
        assert watcher.wait_for_response(timeout=1.0) == "first answer"

        append(log_path, "second answer\nwith two lines\n---END---\n")
        assert watcher.wait_for_response(timeout=1.0) == "second answer\nwith two lines"

    def test_only_one_response_consumed_per_call(self, watcher, log_path):
        append(log_path, "one\n---END---\ntwo\n---END---\n")
        assert watcher.wait_for_response(timeout=1.0) == "one"
        assert watcher.wait_for_response(timeout=1.0) == "two"

    def test_timeout_does_not_advance_offset(self, watcher, log_path):
        append(log_path, "partial response")

        with pytest.raises(ResponseTimeoutError):
            watcher.wait_for_response(timeout=0.05)
        assert watcher.offset == 0

        append(log_path, " finished\n---END---\n")
        assert watcher.wait_for_response(timeout=1.0) == "partial response finished"

    def test_timeout_is_a_timeout_error(self, watcher):
        with pytest.raises(TimeoutError):
            watcher.wait_for_response(timeout=0.02)

    def test_waits_for_late_marker(self, watcher, log_path):
        timer = threading.Timer(0.05, append, args=(log_path, "late\n---END---\n"))
        timer.start()
        try:
            assert watcher.wait_for_response(timeout=2.0) == "late"
        finally:
            timer.cancel()

    def test_cancel_raises_cancelled(self, watcher):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ExchangeCancelledError):
            watcher.wait_for_response(timeout=1.0, cancel_event=cancel)
