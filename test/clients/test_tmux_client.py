"""Unit tests for the libtmux wrapper."""

from unittest.mock import MagicMock, patch

import pytest

from king_bridge.clients.tmux import SpecialKey, TmuxClient, TmuxError


def make_result(stdout=None, stderr=None):
    result = MagicMock()
    result.stdout = stdout or []
    result.stderr = stderr or []
    return result


@pytest.fixture
def client():
    tmux = TmuxClient()
    tmux.server = MagicMock()
    return tmux


@pytest.fixture
def pane(client):
    pane = MagicMock()
    pane.pane_height = "4"
    pane.cmd.return_value = make_result()
    session = MagicMock()
    session.windows = [MagicMock(active_pane=pane)]
    client.server.sessions.get.return_value = session
    return pane


class TestSessions:
    @patch("king_bridge.clients.tmux.shutil.which", return_value="/usr/bin/tmux")
    def test_create_session_uses_fixed_size(self, mock_which, client):
        client.create_session("mc-king", "/home/dev/project", 200, 50)

        client.server.new_session.assert_called_once_with(
            session_name="mc-king",
            start_directory="/home/dev/project",
            attach=False,
            x=200,
            y=50,
        )

    @patch("king_bridge.clients.tmux.shutil.which", return_value=None)
    def test_create_session_without_tmux(self, mock_which, client):
        with pytest.raises(TmuxError, match="not found"):
            client.create_session("mc-king", "/tmp", 200, 50)
        client.server.new_session.assert_not_called()

    @patch("king_bridge.clients.tmux.shutil.which", return_value="/usr/bin/tmux")
    def test_create_session_failure_is_wrapped(self, mock_which, client):
        client.server.new_session.side_effect = Exception("duplicate session: mc-king")
        with pytest.raises(TmuxError, match="duplicate session"):
            client.create_session("mc-king", "/tmp", 200, 50)

    def test_session_exists_swallows_server_errors(self, client):
        client.server.has_session.side_effect = Exception("no server running")
        assert client.session_exists("mc-king") is False

    def test_kill_missing_session(self, client):
        client.server.has_session.return_value = False
        assert client.kill_session("mc-king") is False
        client.server.cmd.assert_not_called()

    def test_kill_existing_session(self, client):
        client.server.has_session.side_effect = [True, False]
        client.server.cmd.return_value = make_result()

        assert client.kill_session("mc-king") is True
        client.server.cmd.assert_called_once_with("kill-session", "-t", "mc-king")


class TestKeys:
    def test_send_keys_is_literal(self, client, pane):
        client.send_keys("mc-king", "Enter; rm -rf ~ C-c")
        pane.cmd.assert_called_once_with("send-keys", "-l", "--", "Enter; rm -rf ~ C-c")

    @pytest.mark.parametrize(
        "key,name",
        [
            (SpecialKey.ENTER, "Enter"),
            (SpecialKey.ESCAPE, "Escape"),
            (SpecialKey.UP, "Up"),
            (SpecialKey.DOWN, "Down"),
            (SpecialKey.CTRL_C, "C-c"),
        ],
    )
    def test_special_keys(self, client, pane, key, name):
        client.send_special_key("mc-king", key)
        pane.cmd.assert_called_once_with("send-keys", name)

    def test_tmux_stderr_raises(self, client, pane):
        pane.cmd.return_value = make_result(stderr=["can't find pane"])
        with pytest.raises(TmuxError, match="can't find pane"):
            client.send_keys("mc-king", "hello")

    def test_missing_session_raises(self, client):
        client.server.sessions.get.return_value = None
        with pytest.raises(TmuxError, match="not found"):
            client.send_special_key("mc-king", SpecialKey.ENTER)


class TestCapture:
    def test_capture_returns_snapshot(self, client, pane):
        pane.cmd.return_value = make_result(stdout=["old", "❯ ", "", "", ""])

        snapshot = client.capture("mc-king")

        pane.cmd.assert_called_once_with("capture-pane", "-p", "-J", "-S", "-1000")
        assert snapshot.lines == ("old", "❯ ", "", "", "")
        assert snapshot.height == 4
        assert snapshot.visible_lines == ("❯ ", "", "", "")

    def test_capture_history_override(self, client, pane):
        client.capture("mc-king", history_lines=50)
        pane.cmd.assert_called_once_with("capture-pane", "-p", "-J", "-S", "-50")

    def test_capture_error(self, client, pane):
        pane.cmd.return_value = make_result(stderr=["no such pane"])
        with pytest.raises(TmuxError):
            client.capture("mc-king")
