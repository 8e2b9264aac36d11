"""Claude Code provider: launch command and screen parsing for King."""

import logging
import re
import shlex
import shutil
from typing import List, Optional

from king_bridge.constants import CLAUDE_BINARY, OLLAMA_BASE_URL
from king_bridge.errors import KingError
from king_bridge.models.king import ProjectConfig
from king_bridge.models.screen import ScreenSnapshot, SelectionPrompt

logger = logging.getLogger(__name__)


class ProviderError(KingError):
    """Exception raised for provider-specific errors."""

    pass


# Regex patterns for Claude Code screen analysis
ANSI_CODE_PATTERN = r"\x1b\[[\d;?]*[a-zA-Z]"
# Box-drawing borders some versions draw around the input area and dialogs
BOX_BORDER_PATTERN = r"^\s*│\s?|\s?│\s*$"
# Idle input prompt. Presence anywhere on screen counts as ready.
IDLE_PROMPT_GLYPH = "❯"
TRUST_PROMPT_PATTERN = r"Yes, I trust this folder"  # Workspace trust dialog
# Footer of a selection dialog, e.g. "Enter to select · ↑/↓ to navigate · Esc to cancel"
NAVIGATION_HINT_PATTERN = r"Enter to select|↑/↓ to navigate|[Aa]rrow keys to navigate"
# Task header chip of a question dialog, e.g. "☐ Database"
CHECKBOX_GLYPHS = "☐☒☑✔"
HIGHLIGHT_GLYPHS = "❯›"
OPTION_MARKER_GLYPHS = CHECKBOX_GLYPHS + HIGHLIGHT_GLYPHS
# "❯ 2. Use PostgreSQL" / "  3. Type something."
OPTION_PATTERN = re.compile(
    rf"^\s*(?P<marker>[{HIGHLIGHT_GLYPHS}])?\s*(?P<index>\d+)\.\s+(?P<text>\S.*?)\s*$"
)
# Fallback question lines shorter than this are too likely to be noise
MIN_QUESTION_LENGTH = 10


class ClaudeCodeProvider:
    """Builds the King launch command and interprets what Claude Code renders.

    The parsing methods are pure functions of a ScreenSnapshot so they can be
    tested against fixed screen fixtures and replaced without touching the
    lifecycle code.
    """

    def __init__(
        self,
        working_directory: str,
        project_config: Optional[ProjectConfig] = None,
        binary: str = CLAUDE_BINARY,
    ):
        self.working_directory = working_directory
        self.project_config = project_config or ProjectConfig()
        self.binary = binary

    def build_command(self) -> str:
        """Build the shell command typed into the fresh tmux session.

        Arguments are joined with shlex so the working directory and model
        name cannot break out of the command.
        """
        if shutil.which(self.binary) is None:
            raise ProviderError(f"Claude Code binary '{self.binary}' not found on PATH")

        # Bypass the nested-session guard when launched from inside Claude Code
        env_parts = ["env", "-u", "CLAUDECODE"]
        command_parts = [self.binary, "--dangerously-skip-permissions"]

        if self.project_config.offline:
            env_parts.append(f"ANTHROPIC_BASE_URL={OLLAMA_BASE_URL}")
            if self.project_config.ollama_model:
                command_parts.extend(["--model", self.project_config.ollama_model])

        launch = shlex.join(env_parts + command_parts)
        return f"cd {shlex.quote(self.working_directory)} && {launch}"

    @staticmethod
    def _clean_lines(lines) -> List[str]:
        cleaned = []
        for line in lines:
            line = re.sub(ANSI_CODE_PATTERN, "", line)
            cleaned.append(re.sub(BOX_BORDER_PATTERN, "", line))
        return cleaned

    @staticmethod
    def is_ready(snapshot: ScreenSnapshot) -> bool:
        """True once the idle prompt glyph is on screen.

        Known limitation: the glyph can show up in startup banners or in a
        selection dialog's highlight, which reads as ready too.
        """
        return IDLE_PROMPT_GLYPH in snapshot.text

    @staticmethod
    def is_trust_prompt(snapshot: ScreenSnapshot) -> bool:
        clean = re.sub(ANSI_CODE_PATTERN, "", snapshot.text)
        return re.search(TRUST_PROMPT_PATTERN, clean) is not None

    @classmethod
    def has_selection_prompt(cls, snapshot: ScreenSnapshot) -> bool:
        """Cheap check: navigation hint plus at least one option/checkbox glyph."""
        text = "\n".join(cls._clean_lines(snapshot.visible_lines))
        if not re.search(NAVIGATION_HINT_PATTERN, text):
            return False
        return any(glyph in text for glyph in OPTION_MARKER_GLYPHS)

    @classmethod
    def parse_selection_prompt(cls, snapshot: ScreenSnapshot) -> Optional[SelectionPrompt]:
        """Parse the selection dialog on screen, or return None.

        Only the visible pane is considered, and scanning stops at the last
        navigation hint line. A numbered list restarts whenever "1." is seen,
        so numbered text above the dialog is discarded. Anything malformed
        (no options, no highlight, broken numbering at the end) yields None.
        """
        if not cls.has_selection_prompt(snapshot):
            return None

        lines = cls._clean_lines(snapshot.visible_lines)
        hint_index = None
        for i, line in enumerate(lines):
            if re.search(NAVIGATION_HINT_PATTERN, line):
                hint_index = i
        if hint_index is None:
            return None
        region = lines[:hint_index]

        options: List[str] = []
        highlighted: Optional[int] = None
        first_option_line = 0
        for i, line in enumerate(region):
            match = OPTION_PATTERN.match(line)
            if not match:
                continue
            number = int(match.group("index"))
            if number == 1:
                options, highlighted, first_option_line = [], None, i
            elif number != len(options) + 1:
                # Broken sequence: not part of the dialog's option list
                options, highlighted = [], None
                continue
            if match.group("marker"):
                if highlighted is not None:
                    logger.debug("Selection prompt has more than one highlighted option")
                    return None
                highlighted = len(options)
            options.append(match.group("text"))

        if not options:
            return None
        if highlighted is None:
            logger.debug(f"Selection prompt with {len(options)} options has no highlight marker")
            return None

        question = cls._find_question(region[:first_option_line])
        return SelectionPrompt(question=question, options=tuple(options), highlighted=highlighted)

    @staticmethod
    def _find_question(lines: List[str]) -> str:
        """Recover the question text above the option list."""
        checkbox_line = None
        for i, line in enumerate(lines):
            if any(glyph in line for glyph in CHECKBOX_GLYPHS):
                checkbox_line = i
        if checkbox_line is not None:
            for line in lines[checkbox_line + 1 :]:
                if not line.strip():
                    continue
                if not OPTION_PATTERN.match(line):
                    return line.strip()
                break

        for line in lines:
            stripped = line.strip()
            if stripped.endswith("?") and len(stripped) > MIN_QUESTION_LENGTH:
                return stripped
        return ""
