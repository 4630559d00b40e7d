"""Agent invocation boundary."""

from abc import ABC, abstractmethod

from ai_scan.models.model_batch import InvocationResult


class AgentInvoker(ABC):
    """Turns prompt text into agent output.

    Implementations never raise for a failed call; they report it through
    InvocationResult.success and error_kind.
    """

    @abstractmethod
    async def invoke(self, prompt: str) -> InvocationResult:
        """Run the agent once with the given prompt."""
        ...
