"""Helpers for the on-disk .mission directory."""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from king_bridge import constants
from king_bridge.models.king import ProjectConfig
from king_bridge.providers.claude_code import ProviderError

logger = logging.getLogger(__name__)


def mission_dir(working_directory: str) -> Path:
    return Path(working_directory) / constants.MISSION_DIR_NAME


def mission_prompt_path(working_directory: str) -> Path:
    return mission_dir(working_directory) / constants.MISSION_PROMPT_FILE


def conversation_path(working_directory: str) -> Path:
    return mission_dir(working_directory) / constants.CONVERSATION_FILE


def load_project_config(working_directory: str) -> ProjectConfig:
    """Load .mission/config.json. A missing file means online defaults."""
    config_path = mission_dir(working_directory) / constants.PROJECT_CONFIG_FILE
    if not config_path.exists():
        return ProjectConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return ProjectConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Invalid project config {config_path}: {e}")
        raise ProviderError(f"Failed to load project config '{config_path}': {e}") from e
