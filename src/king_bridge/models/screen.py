"""Screen capture and parsed UI state models."""

from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScreenSnapshot(BaseModel):
    """Immutable capture of a tmux pane: scrollback followed by the visible buffer."""

    model_config = ConfigDict(frozen=True)

    lines: Tuple[str, ...] = ()
    height: int = Field(default=0, ge=0, description="Rows of the visible pane")
    captured_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_text(cls, text: str, height: int = 0) -> "ScreenSnapshot":
        return cls(lines=tuple(text.split("\n")), height=height)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def visible_lines(self) -> Tuple[str, ...]:
        """Bottom ``height`` lines, or everything when the height is unknown."""
        if self.height <= 0 or self.height >= len(self.lines):
            return self.lines
        return self.lines[-self.height :]

    def diff(self, previous: Optional["ScreenSnapshot"]) -> List[str]:
        """Return lines that appeared since ``previous``.

        The longest suffix of ``previous`` that is also a prefix of this
        snapshot is treated as unchanged (the pane scrolled); when nothing
        overlaps, every line is considered new.
        """
        if previous is None:
            return list(self.lines)
        old = previous.lines
        new = self.lines
        for start in range(len(old)):
            overlap = old[start:]
            if new[: len(overlap)] == overlap:
                return list(new[len(overlap) :])
        return list(new)


class SelectionPrompt(BaseModel):
    """Multiple-choice question rendered by King."""

    model_config = ConfigDict(frozen=True)

    question: str = ""
    options: Tuple[str, ...] = Field(..., min_length=1)
    highlighted: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _highlight_in_range(self) -> "SelectionPrompt":
        if self.highlighted >= len(self.options):
            raise ValueError(
                f"Highlighted index {self.highlighted} out of range for {len(self.options)} options"
            )
        return self
