"""Integration tests for the tmux client against a real tmux server.

Usage:
    pytest test/clients/test_tmux_integration.py -v -o "addopts="
"""

import shutil
import uuid

import pytest

from king_bridge.clients.tmux import SpecialKey, TmuxClient
from king_bridge.utils.terminal import wait_until

pytestmark = [pytest.mark.integration, pytest.mark.slow]


@pytest.fixture(scope="module")
def client():
    if not shutil.which("tmux"):
        pytest.skip("tmux not installed")
    return TmuxClient()


@pytest.fixture
def session(client, tmp_path):
    name = f"mc-test-{uuid.uuid4().hex[:8]}"
    client.create_session(name, str(tmp_path), 120, 30)
    yield name
    client.kill_session(name)


def test_literal_text_reaches_the_shell(client, session):
    client.send_keys(session, "echo 'C-c Enter $HOME'")
    client.send_special_key(session, SpecialKey.ENTER)

    assert wait_until(
        lambda: any(line == "C-c Enter $HOME" for line in client.capture(session).lines),
        timeout=5.0,
        polling_interval=0.2,
    )


def test_capture_knows_pane_height(client, session):
    assert 0 < client.capture(session).height <= 30


def test_kill_session(client, tmp_path):
    name = f"mc-test-{uuid.uuid4().hex[:8]}"
    client.create_session(name, str(tmp_path), 80, 24)

    assert client.kill_session(name) is True
    assert client.session_exists(name) is False
    assert client.kill_session(name) is False
