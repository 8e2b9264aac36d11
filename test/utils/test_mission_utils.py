"""Unit tests for .mission directory helpers."""

import json

import pytest

from king_bridge.models.king import ProjectMode
from king_bridge.providers.claude_code import ProviderError
from king_bridge.utils.mission import (
    conversation_path,
    load_project_config,
    mission_prompt_path,
)


def test_mission_paths(tmp_path):
    assert mission_prompt_path(str(tmp_path)) == tmp_path / ".mission" / "CLAUDE.md"
    assert conversation_path(str(tmp_path)) == tmp_path / ".mission" / "conversation.md"


def test_missing_config_is_online(tmp_path):
    config = load_project_config(str(tmp_path))
    assert config.mode == ProjectMode.ONLINE
    assert not config.offline


def test_offline_config(tmp_path):
    (tmp_path / ".mission").mkdir()
    (tmp_path / ".mission" / "config.json").write_text(
        json.dumps({"mode": "offline", "ollamaModel": "qwen2.5-coder:32b"}), encoding="utf-8"
    )

    config = load_project_config(str(tmp_path))

    assert config.offline
    assert config.ollama_model == "qwen2.5-coder:32b"


@pytest.mark.parametrize("content", ["{not json", '{"mode": "airplane"}'])
def test_invalid_config_raises(tmp_path, content):
    (tmp_path / ".mission").mkdir()
    (tmp_path / ".mission" / "config.json").write_text(content, encoding="utf-8")

    with pytest.raises(ProviderError, match="config"):
        load_project_config(str(tmp_path))
