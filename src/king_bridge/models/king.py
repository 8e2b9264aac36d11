"""King session, status and configuration models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from king_bridge import constants


class KingStatus(str, Enum):
    """Lifecycle status of the managed agent."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


class KingSession(BaseModel):
    """One externally visible King instance."""

    name: str = Field(..., description="Identity of the managed agent")
    working_directory: str = Field(..., description="Project directory King runs in")
    status: KingStatus = Field(default=KingStatus.STOPPED)
    total_tokens: int = Field(default=0, ge=0, description="Cumulative tokens across exchanges")
    total_cost_usd: float = Field(default=0.0, ge=0.0, description="Cumulative estimated cost")


class ProjectMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class ProjectConfig(BaseModel):
    """Offline mode settings from .mission/config.json."""

    model_config = ConfigDict(populate_by_name=True)

    mode: ProjectMode = ProjectMode.ONLINE
    ollama_model: Optional[str] = Field(default=None, alias="ollamaModel")

    @property
    def offline(self) -> bool:
        return self.mode == ProjectMode.OFFLINE


class KingTimings(BaseModel):
    """Polling intervals and deadlines used by one controller."""

    ready_timeout: float = Field(default=constants.READY_TIMEOUT, gt=0)
    ready_poll_interval: float = Field(default=constants.READY_POLL_INTERVAL, gt=0)
    response_timeout: float = Field(default=constants.RESPONSE_TIMEOUT, gt=0)
    response_poll_interval: float = Field(default=constants.RESPONSE_POLL_INTERVAL, gt=0)
    usage_poll_interval: float = Field(default=constants.USAGE_POLL_INTERVAL, gt=0)
    key_delay: float = Field(default=constants.KEY_DELAY, ge=0)
