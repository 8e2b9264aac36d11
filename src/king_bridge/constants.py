"""Constants for the King bridge.

This module defines the configuration constants used throughout king-bridge,
including mission file layout, tmux settings, polling intervals and pricing.

king-bridge drives a single interactive Claude Code process ("King") inside a
tmux session on behalf of callers that only see files and events. Most values
can be overridden with ``KING_*`` environment variables.
"""

import os


def _get_float_env(name: str, default: float) -> float:
    """Parse float env var with safe fallback."""
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _get_int_env(name: str, default: int) -> int:
    """Parse int env var with safe fallback."""
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


# =============================================================================
# Session Configuration
# =============================================================================
# King-managed tmux sessions are prefixed to distinguish them from user sessions
SESSION_PREFIX = "mc-"

# Default identity of the managed agent
DEFAULT_KING_NAME = "king"

# =============================================================================
# Mission Directory Layout
# =============================================================================
# Mission state lives next to the project in <work_dir>/.mission
MISSION_DIR_NAME = ".mission"

# King system prompt; must exist before King can start (created by `mc init`)
MISSION_PROMPT_FILE = "CLAUDE.md"

# Append-only conversation log written by King itself
CONVERSATION_FILE = "conversation.md"

# Optional online/offline mode settings
PROJECT_CONFIG_FILE = "config.json"

# Line King appends after every complete response
END_MARKER = "---END---"

# =============================================================================
# Tmux Configuration
# =============================================================================
# Lines of scrollback captured together with the visible buffer
TMUX_HISTORY_LINES = _get_int_env("KING_TMUX_HISTORY_LINES", 1000)

# Fixed pane size so the rendered UI wraps predictably
TMUX_PANE_WIDTH = _get_int_env("KING_TMUX_PANE_WIDTH", 200)
TMUX_PANE_HEIGHT = _get_int_env("KING_TMUX_PANE_HEIGHT", 50)

# =============================================================================
# Agent Launch Configuration
# =============================================================================
CLAUDE_BINARY = os.getenv("KING_CLAUDE_BINARY", "claude")

# Local model endpoint used in offline mode
OLLAMA_BASE_URL = os.getenv("KING_OLLAMA_BASE_URL", "http://localhost:11434")

# =============================================================================
# Timing Configuration (seconds)
# =============================================================================
# How long to wait for the idle prompt after launching King
READY_TIMEOUT = _get_float_env("KING_READY_TIMEOUT", 60.0)
READY_POLL_INTERVAL = _get_float_env("KING_READY_POLL_INTERVAL", 1.0)

# How long a single exchange may take before an error event is emitted
RESPONSE_TIMEOUT = _get_float_env("KING_RESPONSE_TIMEOUT", 300.0)
RESPONSE_POLL_INTERVAL = _get_float_env("KING_RESPONSE_POLL_INTERVAL", 0.5)

# Usage/health monitor cadence
USAGE_POLL_INTERVAL = _get_float_env("KING_USAGE_POLL_INTERVAL", 30.0)

# Delay between navigation keystrokes when answering a selection prompt
KEY_DELAY = _get_float_env("KING_KEY_DELAY", 0.1)

# =============================================================================
# Event Configuration
# =============================================================================
# Outbound event queue size; events beyond this are dropped
EVENT_BUFFER_SIZE = _get_int_env("KING_EVENT_BUFFER_SIZE", 100)

# =============================================================================
# Pricing Configuration (USD per token)
# =============================================================================
# Claude pricing: $3 / MTok input, $15 / MTok output
INPUT_COST_PER_TOKEN = _get_float_env("KING_INPUT_COST_PER_MTOK", 3.0) / 1_000_000
OUTPUT_COST_PER_TOKEN = _get_float_env("KING_OUTPUT_COST_PER_MTOK", 15.0) / 1_000_000
