"""Outbound events published by the King controller."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class EventType(str, Enum):
    STARTED = "started"
    STOPPED = "stopped"
    USER_MESSAGE = "user_message"
    MESSAGE = "message"
    ERROR = "error"
    USAGE_UPDATED = "usage_updated"
    ANSWER = "answer"
    AGENT_SPAWNED = "agent_spawned"
    AGENT_STOPPED = "agent_stopped"


class KingEvent(BaseModel):
    """Tagged payload describing a state change, destined for the event hub."""

    type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
