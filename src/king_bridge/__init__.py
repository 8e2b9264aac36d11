"""king-bridge: drive a terminal-based Claude Code agent through tmux."""

__version__ = "0.1.0"
