"""Token counting and cost estimation for King exchanges."""

from pathlib import Path
from typing import Optional, Protocol

from king_bridge.constants import INPUT_COST_PER_TOKEN, OUTPUT_COST_PER_TOKEN
from king_bridge.models.usage import UsageDelta, UsageReport


class TokenCounter(Protocol):
    def count_tokens(self, text: str) -> int: ...


class ApproxTokenCounter:
    """Rough estimate of ~4 characters per token."""

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return max(1, len(text) // 4)


class UsageAccountant:
    """Turns a request/response pair into a UsageDelta.

    Output is priced higher than input, so the two sides are counted
    separately.
    """

    def __init__(
        self,
        counter: Optional[TokenCounter] = None,
        input_cost_per_token: float = INPUT_COST_PER_TOKEN,
        output_cost_per_token: float = OUTPUT_COST_PER_TOKEN,
    ):
        self.counter = counter or ApproxTokenCounter()
        self.input_cost_per_token = input_cost_per_token
        self.output_cost_per_token = output_cost_per_token

    def measure(self, request: str, response: str) -> UsageDelta:
        input_tokens = self.counter.count_tokens(request)
        output_tokens = self.counter.count_tokens(response)
        cost = (
            input_tokens * self.input_cost_per_token + output_tokens * self.output_cost_per_token
        )
        return UsageDelta(input_tokens=input_tokens, output_tokens=output_tokens, cost_usd=cost)


class ConversationUsageSource:
    """Reports usage for the whole conversation log.

    Input/output split is unknown here, so the cost uses the average of the
    two rates.
    """

    def __init__(self, path: Path, counter: Optional[TokenCounter] = None):
        self.path = Path(path)
        self.counter = counter or ApproxTokenCounter()

    def read(self) -> UsageReport:
        if not self.path.exists():
            return UsageReport()

        content = self.path.read_text(encoding="utf-8", errors="replace")
        total_tokens = self.counter.count_tokens(content)
        avg_cost_per_token = (INPUT_COST_PER_TOKEN + OUTPUT_COST_PER_TOKEN) / 2
        return UsageReport(
            total_tokens=total_tokens,
            estimated_cost_usd=total_tokens * avg_cost_per_token,
            conversation_length=len(content.encode("utf-8")),
        )
