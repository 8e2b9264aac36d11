"""Token usage models."""

from pydantic import BaseModel, Field


class UsageDelta(BaseModel):
    """Token counts and estimated cost for one request/response exchange."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cost_usd: float = Field(default=0.0, ge=0.0)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class UsageReport(BaseModel):
    """Usage observed from the conversation log as a whole."""

    total_tokens: int = Field(default=0, ge=0)
    estimated_cost_usd: float = Field(default=0.0, ge=0.0)
    conversation_length: int = Field(default=0, ge=0, description="Log size in bytes")
